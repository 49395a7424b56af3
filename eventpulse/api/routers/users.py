"""Staff account endpoints (admin only)."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.auth import require_admin
from eventpulse.api.models.users import UserCreateRequest, UserResponse
from eventpulse.core.events import EventService
from eventpulse.core.users import UserService
from eventpulse.db import get_db
from eventpulse.lib.security import TokenClaims

router = APIRouter(prefix="/api/v1/usuarios", tags=["usuarios"])


@router.get("", response_model=list[UserResponse])
async def list_users(
    event_id: uuid.UUID | None = Query(default=None, alias="evento_id"),
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[UserResponse]:
    """Workers of an event; defaults to the active event."""
    scope = await EventService(db).resolve_event_id(admin, event_id)
    if scope is None:
        return []
    users = await UserService(db).list_workers(scope)
    return [UserResponse.model_validate(user) for user in users]


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    body: UserCreateRequest,
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Create a worker bound to the active event."""
    event = await EventService(db).require_active()
    user = await UserService(db).create_worker(
        handle=body.handle,
        display_name=body.display_name,
        password=body.password,
        role=body.role,
        event_id=event.id,
    )
    return UserResponse.model_validate(user)
