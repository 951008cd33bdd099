"""
FastAPI dependencies: pagination parameters and request identity.

The authenticated user is resolved here, from the ``Authorization:
Bearer`` header, and handed to routers as a plain value; services receive
the caller's identity as an explicit argument.
"""
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.exceptions import InvalidCredentialsError
from app.models import User
from app.repositories import UserRepository
from app.services.token_service import TokenLifecycleManager

bearer_scheme = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Reusable dependency that parses ``limit`` / ``offset`` query parameters.

    ``limit`` is bounded to ``1..settings.MAX_PAGE_SIZE`` here; the service
    layer enforces ``limit >= 1`` again for callers that bypass HTTP.
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Number of articles returned per page.",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of articles to skip; snapped down to a page boundary.",
        ),
    ) -> None:
        self.limit = limit
        self.offset = offset


@dataclass
class AuthContext:
    user: User
    access_token_id: int


async def _resolve(token: str, db: AsyncSession) -> AuthContext:
    user_id, token_id = await TokenLifecycleManager(db).authenticate_access_token(token)
    user = await UserRepository(db).find_by_id(user_id)
    if user is None:
        raise InvalidCredentialsError("User not found")
    return AuthContext(user=user, access_token_id=token_id)


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _resolve(credentials.credentials, db)


async def get_current_user(auth: AuthContext = Depends(get_auth_context)) -> User:
    return auth.user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    Like ``get_current_user`` but returns None for anonymous requests or
    tokens that fail validation, so public endpoints stay reachable.
    """
    if credentials is None:
        return None
    try:
        return (await _resolve(credentials.credentials, db)).user
    except InvalidCredentialsError:
        return None
