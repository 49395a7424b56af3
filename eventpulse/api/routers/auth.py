"""Login and current-user endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.auth import get_current_user
from eventpulse.api.models.users import LoginRequest, LoginResponse, UserResponse
from eventpulse.core.users import UserService
from eventpulse.db import get_db
from eventpulse.lib.security import TokenClaims

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> LoginResponse:
    """Exchange a handle and password for a bearer token."""
    token, user = await UserService(db).authenticate(body.handle, body.password)
    return LoginResponse(token=token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def me(
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    account = await UserService(db).get(user.user_id)
    return UserResponse.model_validate(account)
