"""
Token lifecycle — issues, validates and revokes access / refresh token
records.

Every login persists exactly one ``AccessToken`` and one ``RefreshToken``
record; the refresh record stores the id of the access record it was
issued with. Expiry is evaluated when a token is presented, never by
deleting rows. The signed JWT strings carry the record id as ``jti`` so a
presented token can be matched back to its record and its revocation flag.

Rotation and logout:
- ``rotate`` accepts a valid refresh token, revokes it together with the
  access record it is linked to, and issues a fresh pair.
- ``revoke_access_token`` (logout) revokes an access record and every
  refresh record linked to it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import InvalidCredentialsError
from app.models import AccessToken, RefreshToken, User, utcnow
from app.repositories import TokenRepository, UserRepository
from app.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    decode_token,
    encode_access_token,
    encode_refresh_token,
)

logger = logging.getLogger(__name__)


@dataclass
class TokenPair:
    access_record: AccessToken
    refresh_record: RefreshToken
    access_token: str
    refresh_token: str


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_valid(record: AccessToken | RefreshToken, now: datetime | None = None) -> bool:
    """A token record is valid while it is not revoked and ``now < expires_at``."""
    now = now or utcnow()
    return not record.is_revoked and _as_utc(now) < _as_utc(record.expires_at)


class TokenLifecycleManager:
    def __init__(
        self,
        db: AsyncSession,
        access_lifetime: timedelta | None = None,
        refresh_lifetime: timedelta | None = None,
    ) -> None:
        self.tokens = TokenRepository(db)
        self.users = UserRepository(db)
        self.access_lifetime = access_lifetime or timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
        self.refresh_lifetime = refresh_lifetime or timedelta(
            minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES
        )

    is_valid = staticmethod(is_valid)

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    async def issue_access_token(self, user_id: int, now: datetime | None = None) -> AccessToken:
        now = now or utcnow()
        record = AccessToken(
            user_id=user_id,
            is_revoked=False,
            expires_at=now + self.access_lifetime,
            created_at=now,
            updated_at=now,
        )
        return await self.tokens.save(record)

    async def issue_refresh_token(
        self, access_token_id: int, now: datetime | None = None
    ) -> RefreshToken:
        now = now or utcnow()
        record = RefreshToken(
            access_token_id=access_token_id,
            is_revoked=False,
            expires_at=now + self.refresh_lifetime,
            created_at=now,
            updated_at=now,
        )
        return await self.tokens.save(record)

    async def issue_token_pair(self, user: User) -> TokenPair:
        """Persist a linked access/refresh record pair and sign both tokens."""
        now = utcnow()
        access_record = await self.issue_access_token(user.id, now)
        refresh_record = await self.issue_refresh_token(access_record.id, now)
        logger.debug(
            "Issued access token %s and refresh token %s for user %s",
            access_record.id,
            refresh_record.id,
            user.id,
        )
        return TokenPair(
            access_record=access_record,
            refresh_record=refresh_record,
            access_token=encode_access_token(
                access_record.id, user.id, user.username, user.email, now, access_record.expires_at
            ),
            refresh_token=encode_refresh_token(
                refresh_record.id, user.id, now, refresh_record.expires_at
            ),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def authenticate_access_token(self, token: str) -> tuple[int, int]:
        """
        Return ``(user_id, access_token_id)`` for a presented access token.

        Raises InvalidCredentialsError when the signature, expiry or type is
        wrong, or when the backing record is missing, revoked or expired.
        """
        try:
            payload = decode_token(token, ACCESS_TOKEN_TYPE)
            token_id, user_id = int(payload["jti"]), int(payload["sub"])
        except (jwt.InvalidTokenError, ValueError) as exc:
            logger.debug("Rejected access token: %s", exc)
            raise InvalidCredentialsError("Invalid or expired access token") from exc

        record = await self.tokens.find_access(token_id)
        if record is None or record.user_id != user_id or not self.is_valid(record):
            raise InvalidCredentialsError("Invalid or expired access token")
        return user_id, token_id

    # ------------------------------------------------------------------
    # Rotation / revocation
    # ------------------------------------------------------------------

    async def rotate(self, refresh_token: str) -> tuple[User, TokenPair]:
        """Exchange a valid refresh token for a new pair, revoking the old one."""
        try:
            payload = decode_token(refresh_token, REFRESH_TOKEN_TYPE)
            token_id, user_id = int(payload["jti"]), int(payload["sub"])
        except (jwt.InvalidTokenError, ValueError) as exc:
            logger.debug("Rejected refresh token: %s", exc)
            raise InvalidCredentialsError("Invalid or expired refresh token") from exc

        record = await self.tokens.find_refresh(token_id)
        if record is None or not self.is_valid(record):
            raise InvalidCredentialsError("Invalid or expired refresh token")

        access_record = await self.tokens.find_access(record.access_token_id)
        if access_record is None or access_record.user_id != user_id:
            raise InvalidCredentialsError("Invalid or expired refresh token")

        user = await self.users.find_by_id(user_id)
        if user is None:
            raise InvalidCredentialsError("Invalid or expired refresh token")

        record.is_revoked = True
        access_record.is_revoked = True
        pair = await self.issue_token_pair(user)
        logger.info("Rotated refresh token %s for user %s", token_id, user_id)
        return user, pair

    async def revoke_access_token(self, access_token_id: int) -> None:
        """Revoke an access record and every refresh record linked to it."""
        record = await self.tokens.find_access(access_token_id)
        if record is None:
            return
        record.is_revoked = True
        for refresh in await self.tokens.refresh_tokens_for_access(access_token_id):
            refresh.is_revoked = True
        await self.tokens.db.flush()
        logger.info("Revoked access token %s and its refresh tokens", access_token_id)
