from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import AuthContext, get_auth_context, get_current_user
from app.models import User
from app.schemas import AuthEnvelope, TokenRefreshRequest, UserEnvelope, UserLogin, UserRegister, UserUpdate
from app.services import user_service

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/users", status_code=201, response_model=UserEnvelope)
async def register(data: UserRegister, db: AsyncSession = Depends(get_db)):
    return {"user": await user_service.register_user(db, data)}


@router.post("/users/login", response_model=AuthEnvelope)
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    return {"user": await user_service.login_user(db, data)}


@router.post("/users/refresh", response_model=AuthEnvelope)
async def refresh(data: TokenRefreshRequest, db: AsyncSession = Depends(get_db)):
    return {"user": await user_service.refresh_tokens(db, data.refresh_token)}


@router.post("/users/logout", status_code=204)
async def logout(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await user_service.logout(db, auth.access_token_id)


@router.get("/user", response_model=UserEnvelope)
async def current_user(user: User = Depends(get_current_user)):
    return {"user": user_service.user_to_response(user)}


@router.put("/user", response_model=UserEnvelope)
async def update_current_user(
    data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"user": await user_service.update_user(db, user, data)}
