"""Incident endpoints, including the claim and resolve actions."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.auth import get_current_user, require_admin
from eventpulse.api.middleware.error import ClaimConflictError
from eventpulse.api.models import to_payload
from eventpulse.api.models.incidents import (
    ClaimConflictPayload,
    IncidentCreateRequest,
    IncidentHistoryResponse,
    IncidentResponse,
    IncidentUpdateRequest,
)
from eventpulse.core.envelope import EnvelopeKind
from eventpulse.core.events import EventService, ensure_in_scope
from eventpulse.core.hub import Hub, get_hub
from eventpulse.core.incidents import IncidentPatch, IncidentService
from eventpulse.db import get_db
from eventpulse.db.models import Incident, IncidentState
from eventpulse.lib.security import TokenClaims

router = APIRouter(prefix="/api/v1/incidencias", tags=["incidencias"])


async def _load_in_scope(
    service: IncidentService, incident_id: uuid.UUID, user: TokenClaims
) -> Incident:
    incident = await service.get(incident_id)
    ensure_in_scope(user, incident.event_id, "incidencia", incident_id)
    return incident


async def _publish_update(hub: Hub, incident: Incident) -> IncidentResponse:
    response = IncidentResponse.model_validate(incident)
    await hub.publish(incident.event_id, EnvelopeKind.INCIDENT_UPDATED, to_payload(response))
    return response


@router.get("", response_model=list[IncidentResponse])
async def list_incidents(
    state: IncidentState | None = Query(default=None, alias="estado"),
    event_id: uuid.UUID | None = Query(default=None, alias="evento_id"),
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[IncidentResponse]:
    """Incidents of the scoped event, newest first, optionally filtered by state."""
    scope = await EventService(db).resolve_event_id(user, event_id)
    if scope is None:
        return []
    incidents = await IncidentService(db).list_for_event(scope, state)
    return [IncidentResponse.model_validate(incident) for incident in incidents]


@router.get("/{incident_id}", response_model=IncidentResponse)
async def get_incident(
    incident_id: uuid.UUID,
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> IncidentResponse:
    incident = await _load_in_scope(IncidentService(db), incident_id, user)
    return IncidentResponse.model_validate(incident)


@router.get("/{incident_id}/historial", response_model=list[IncidentHistoryResponse])
async def get_incident_history(
    incident_id: uuid.UUID,
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[IncidentHistoryResponse]:
    service = IncidentService(db)
    await _load_in_scope(service, incident_id, user)
    rows = await service.history(incident_id)
    return [IncidentHistoryResponse.model_validate(row) for row in rows]


@router.post("", response_model=IncidentResponse, status_code=201)
async def create_incident(
    body: IncidentCreateRequest,
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> IncidentResponse:
    """Report a pending incident in a zone of the active event."""
    event = await EventService(db).require_active()
    incident = await IncidentService(db).create(
        event_id=event.id,
        zone_id=body.zone_id,
        incident_type=body.type,
        description=body.description,
        creator_id=admin.user_id,
        assignee_id=body.assigned_to,
    )
    response = IncidentResponse.model_validate(incident)
    await hub.publish(event.id, EnvelopeKind.INCIDENT_CREATED, to_payload(response))
    return response


@router.patch("/{incident_id}", response_model=IncidentResponse)
async def edit_incident(
    incident_id: uuid.UUID,
    body: IncidentUpdateRequest,
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> IncidentResponse:
    service = IncidentService(db)
    await _load_in_scope(service, incident_id, user)
    incident = await service.edit(
        incident_id,
        IncidentPatch(state=body.state, assigned_to=body.assigned_to),
        actor_id=user.user_id,
        actor_role=user.role,
    )
    return await _publish_update(hub, incident)


@router.patch("/{incident_id}/atender", response_model=IncidentResponse)
async def claim_incident(
    incident_id: uuid.UUID,
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> IncidentResponse:
    """
    Claim a pending incident for the caller.

    Exactly one concurrent claim wins. Losers get a 409 naming the winner
    and the conflict is broadcast to the event as ``incidencia_conflicto``.
    """
    service = IncidentService(db)
    incident = await _load_in_scope(service, incident_id, user)
    # The rollback on conflict expires the instance
    event_id = incident.event_id

    try:
        claimed = await service.claim(incident_id, user.user_id)
    except ClaimConflictError as e:
        payload = ClaimConflictPayload(
            incident_id=incident_id, message=e.message, winner_name=e.winner_name
        )
        await hub.publish(event_id, EnvelopeKind.INCIDENT_CONFLICT, to_payload(payload))
        raise

    return await _publish_update(hub, claimed)


@router.patch("/{incident_id}/resolver", response_model=IncidentResponse)
async def resolve_incident(
    incident_id: uuid.UUID,
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> IncidentResponse:
    service = IncidentService(db)
    await _load_in_scope(service, incident_id, user)
    incident = await service.resolve(incident_id, user.user_id, user.role)
    return await _publish_update(hub, incident)
