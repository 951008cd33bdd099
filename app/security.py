"""
Signing and hashing primitives.

- bcrypt with a per-password salt for password hashes.
- HS256 JWTs, with separate secrets for access and refresh tokens so a
  refresh token can never be replayed as an access token.
"""
from datetime import datetime

import bcrypt
import jwt

from app.config import settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_password(password: str) -> str:
    """Hash a plain text password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain text password against a bcrypt hash."""
    return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))


def encode_access_token(
    token_id: int, user_id: int, username: str, email: str, issued_at: datetime, expires_at: datetime
) -> str:
    payload = {
        "jti": str(token_id),
        "sub": str(user_id),
        "username": username,
        "email": email,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.ACCESS_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)


def encode_refresh_token(
    token_id: int, user_id: int, issued_at: datetime, expires_at: datetime
) -> str:
    payload = {
        "jti": str(token_id),
        "sub": str(user_id),
        "type": REFRESH_TOKEN_TYPE,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.REFRESH_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, token_type: str) -> dict:
    """
    Verify signature, expiry and type of *token*.

    Raises:
        jwt.InvalidTokenError: if the token is malformed, expired, signed
            with the wrong secret or of the wrong type.
    """
    secret = (
        settings.ACCESS_TOKEN_SECRET
        if token_type == ACCESS_TOKEN_TYPE
        else settings.REFRESH_TOKEN_SECRET
    )
    payload = jwt.decode(
        token,
        secret,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp", "sub", "jti"]},
    )
    if payload.get("type") != token_type:
        raise jwt.InvalidTokenError(f"expected a {token_type} token")
    return payload
