"""
User service — registration, login, token refresh / logout and updates
for the current user.

Login reads only a ``Credentials`` view (id, password hash) of the user
and fails with the same InvalidCredentialsError whether the email is
unknown or the password is wrong.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, InvalidCredentialsError, NotFoundError
from app.models import User
from app.repositories import UserRepository
from app.schemas import AuthResponse, Credentials, UserLogin, UserRegister, UserResponse, UserUpdate
from app.security import hash_password, verify_password
from app.services.token_service import TokenLifecycleManager, TokenPair

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_response(user: User) -> UserResponse:
    return UserResponse(username=user.username, email=user.email, bio=user.bio, image=user.image)


def _auth_response(user: User, pair: TokenPair) -> AuthResponse:
    return AuthResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        username=user.username,
        email=user.email,
        bio=user.bio,
        image=user.image,
    )


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ""


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def register_user(db: AsyncSession, data: UserRegister) -> UserResponse:
    """
    Create a user. Email uniqueness is checked before username uniqueness;
    either collision raises ConflictError.
    """
    logger.info("Registering user with email: %s", data.email)
    users = UserRepository(db)
    username, email = data.username.strip(), data.email.strip()

    if await users.exists_by_email(email):
        raise ConflictError(f"User with email '{email}' already exists")
    if await users.exists_by_username(username):
        raise ConflictError(f"User with username '{username}' already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(data.password),
        bio=data.bio,
        image=data.image,
    )
    await users.save(user)
    logger.info("User saved with ID: %s", user.id)
    return user_to_response(user)


async def login_user(db: AsyncSession, data: UserLogin) -> AuthResponse:
    """Check credentials and mint a new linked access/refresh token pair."""
    logger.info("Login attempt for email: %s", data.email)
    users = UserRepository(db)

    user = await users.find_by_email(data.email)
    if user is None:
        logger.warning("Login failed for email: %s", data.email)
        raise InvalidCredentialsError()

    credentials = Credentials.model_validate(user)
    if not verify_password(data.password, credentials.password_hash):
        logger.warning("Login failed for email: %s", data.email)
        raise InvalidCredentialsError()

    pair = await TokenLifecycleManager(db).issue_token_pair(user)
    logger.info("Login successful for user ID: %s", credentials.id)
    return _auth_response(user, pair)


async def refresh_tokens(db: AsyncSession, refresh_token: str) -> AuthResponse:
    user, pair = await TokenLifecycleManager(db).rotate(refresh_token)
    return _auth_response(user, pair)


async def logout(db: AsyncSession, access_token_id: int) -> None:
    await TokenLifecycleManager(db).revoke_access_token(access_token_id)


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await UserRepository(db).find_by_id(user_id)
    if user is None:
        raise NotFoundError(f"User not found with ID: {user_id}")
    return user


async def update_user(db: AsyncSession, user: User, data: UserUpdate) -> UserResponse:
    """
    Apply a partial update to *user*.

    A field that is None or blank is left unchanged; other values are
    trimmed and overwrite, so this can never clear a field. A new email or
    username already taken by someone else raises ConflictError.
    """
    users = UserRepository(db)

    if _present(data.email) and data.email.strip() != user.email:
        email = data.email.strip()
        if await users.exists_by_email(email):
            raise ConflictError(f"User with email '{email}' already exists")
        user.email = email
    if _present(data.username) and data.username.strip() != user.username:
        username = data.username.strip()
        if await users.exists_by_username(username):
            raise ConflictError(f"User with username '{username}' already exists")
        user.username = username
    if _present(data.password):
        user.password_hash = hash_password(data.password)
    if _present(data.bio):
        user.bio = data.bio.strip()
    if _present(data.image):
        user.image = data.image.strip()

    await db.flush()
    logger.info("User %s updated", user.id)
    return user_to_response(user)
