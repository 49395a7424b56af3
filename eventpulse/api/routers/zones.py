"""Zone endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.auth import get_current_user, require_admin
from eventpulse.api.models.zones import ZoneCreateRequest, ZoneResponse
from eventpulse.core.events import EventService
from eventpulse.core.zones import ZoneService
from eventpulse.db import get_db
from eventpulse.lib.security import TokenClaims

router = APIRouter(prefix="/api/v1/zonas", tags=["zonas"])


@router.get("", response_model=list[ZoneResponse])
async def list_zones(
    event_id: uuid.UUID | None = Query(default=None, alias="evento_id"),
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[ZoneResponse]:
    scope = await EventService(db).resolve_event_id(user, event_id)
    if scope is None:
        return []
    zones = await ZoneService(db).list_for_event(scope)
    return [ZoneResponse.model_validate(zone) for zone in zones]


@router.post("", response_model=ZoneResponse, status_code=201)
async def create_zone(
    body: ZoneCreateRequest,
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ZoneResponse:
    event = await EventService(db).require_active()
    zone = await ZoneService(db).create(body.id, body.name, event.id)
    return ZoneResponse.model_validate(zone)


@router.delete("/{zone_id}")
async def delete_zone(
    zone_id: str,
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    event = await EventService(db).require_active()
    await ZoneService(db).delete(zone_id, event.id)
    return {"mensaje": "Zona eliminada"}
