"""Event lifecycle endpoints."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.auth import get_current_user, require_admin
from eventpulse.api.models import to_payload
from eventpulse.api.models.events import EventCreateRequest, EventResponse
from eventpulse.core.envelope import EnvelopeKind
from eventpulse.core.events import EventService
from eventpulse.core.hub import Hub, get_hub
from eventpulse.db import get_db
from eventpulse.lib.security import TokenClaims

router = APIRouter(prefix="/api/v1/eventos", tags=["eventos"])


@router.get("", response_model=list[EventResponse])
async def list_events(
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[EventResponse]:
    """All events for the admin, the bound event for everyone else."""
    events = await EventService(db).list_for(user)
    return [EventResponse.model_validate(event) for event in events]


@router.post("", response_model=EventResponse, status_code=201)
async def create_event(
    body: EventCreateRequest,
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> EventResponse:
    """
    Create a new active event.

    The previously active event is ended in the same transaction and its
    sockets receive ``evento_terminado``.
    """
    event, ended = await EventService(db).create(body.name, body.description, admin.user_id)
    for previous in ended:
        await hub.publish(
            previous.id,
            EnvelopeKind.EVENT_ENDED,
            to_payload(EventResponse.model_validate(previous)),
        )
    return EventResponse.model_validate(event)


@router.patch("/{event_id}/terminar", response_model=EventResponse)
async def end_event(
    event_id: uuid.UUID,
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> EventResponse:
    event = await EventService(db).end(event_id)
    response = EventResponse.model_validate(event)
    await hub.publish(event.id, EnvelopeKind.EVENT_ENDED, to_payload(response))
    return response
