"""Incident state machine and the claim protocol.

A claim takes a non-blocking row lock (``FOR UPDATE SKIP LOCKED``). When
another transaction already holds the lock the row is skipped, so the loser
fails immediately with a ClaimConflictError naming the winner instead of
queueing behind the leader. Once the winner commits, the row is no longer
pending and later attempts fail on the state check.

Every state change appends an IncidentHistory row in the same transaction.
"""

import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.error import (
    ClaimConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from eventpulse.core.zones import ZoneService
from eventpulse.db.base import utcnow
from eventpulse.db.models import (
    OVERRIDE_ROLES,
    Incident,
    IncidentHistory,
    IncidentState,
    IncidentType,
    Role,
    User,
)
from eventpulse.db.repository import (
    IncidentHistoryRepository,
    IncidentRepository,
    UserRepository,
)
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_WINNER = "otro usuario"

# Legal (from, to) pairs. Terminal state: resuelta. No reopen.
TRANSITIONS: frozenset[tuple[IncidentState, IncidentState]] = frozenset(
    {
        (IncidentState.PENDING, IncidentState.IN_ATTENTION),
        (IncidentState.IN_ATTENTION, IncidentState.RESOLVED),
        (IncidentState.PENDING, IncidentState.RESOLVED),
    }
)


def is_legal_transition(from_state: str, to_state: str) -> bool:
    try:
        pair = (IncidentState(from_state), IncidentState(to_state))
    except ValueError:
        return False
    return pair in TRANSITIONS


def check_transition(from_state: str, to_state: str) -> None:
    if not is_legal_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)


def validate_history(rows: Iterable[IncidentHistory | tuple[str, str]]) -> None:
    """
    Replay an incident's history and check it is a path through the state machine.

    Accepts history rows or ``(from_state, to_state)`` pairs in recorded
    order. The first transition must leave ``pendiente`` and each row must
    start where the previous one ended.

    Raises:
        InvalidTransitionError: On an illegal pair or a broken chain.
    """
    current = IncidentState.PENDING.value
    for row in rows:
        if isinstance(row, IncidentHistory):
            from_state, to_state = row.from_state, row.to_state
        else:
            from_state, to_state = row
        if from_state != current:
            raise InvalidTransitionError(current, from_state)
        check_transition(from_state, to_state)
        current = to_state


@dataclass
class IncidentPatch:
    """Admin edit. None means unchanged."""

    state: IncidentState | None = None
    assigned_to: uuid.UUID | None = None

    @property
    def is_empty(self) -> bool:
        return self.state is None and self.assigned_to is None


class IncidentService:
    """Service for incidents: create, claim, resolve, edit and read."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = IncidentRepository(session)
        self.history_repository = IncidentHistoryRepository(session)
        self.users = UserRepository(session)
        self.zones = ZoneService(session)

    # Reads

    async def get(self, incident_id: uuid.UUID) -> Incident:
        incident = await self.repository.get(incident_id)
        if incident is None:
            raise NotFoundError("incidencia", str(incident_id))
        return incident

    async def list_for_event(
        self, event_id: uuid.UUID, state: IncidentState | None = None
    ) -> list[Incident]:
        return await self.repository.list_by_event(event_id, state.value if state else None)

    async def history(self, incident_id: uuid.UUID) -> list[IncidentHistory]:
        await self.get(incident_id)
        return await self.history_repository.get_by_incident(incident_id)

    # Writes

    async def create(
        self,
        event_id: uuid.UUID,
        zone_id: str,
        incident_type: IncidentType,
        description: str,
        creator_id: uuid.UUID,
        assignee_id: uuid.UUID | None = None,
    ) -> Incident:
        """Create a pending incident in a zone of the event."""
        zone = await self.zones.require(zone_id, event_id)
        if assignee_id is not None:
            await self._require_assignable(assignee_id, event_id)

        incident = await self.repository.create(
            event_id=event_id,
            zone_id=zone.id,
            type=incident_type.value,
            description=description,
            state=IncidentState.PENDING.value,
            created_by=creator_id,
            assigned_to=assignee_id,
        )
        await self.session.commit()

        logger.info(
            "incident_created",
            incident_id=str(incident.id),
            event_id=str(event_id),
            zone_id=zone.id,
            type=incident_type.value,
        )
        return await self._reload(incident.id)

    async def claim(self, incident_id: uuid.UUID, actor_id: uuid.UUID) -> Incident:
        """
        Atomically assign a pending incident to the actor.

        Raises:
            NotFoundError: The incident does not exist.
            ClaimConflictError: Another claim holds the row or already committed.
        """
        incident = await self.repository.try_lock(incident_id)

        if incident is None:
            # Skipped (locked by a concurrent claim) or missing
            await self.session.rollback()
            current = await self.repository.refresh(incident_id)
            if current is None:
                raise NotFoundError("incidencia", str(incident_id))
            winner = current.assignee_name or UNKNOWN_WINNER
            logger.info(
                "claim_conflict",
                incident_id=str(incident_id),
                actor_id=str(actor_id),
                reason="locked",
                winner=winner,
            )
            raise ClaimConflictError(str(incident_id), winner_name=winner)

        if incident.state != IncidentState.PENDING.value:
            state = incident.state
            assignee_id = incident.assigned_to
            await self.session.rollback()
            winner_name = None
            if state == IncidentState.IN_ATTENTION.value and assignee_id is not None:
                winner = await self.users.get(assignee_id)
                winner_name = winner.display_name if winner else UNKNOWN_WINNER
            logger.info(
                "claim_conflict",
                incident_id=str(incident_id),
                actor_id=str(actor_id),
                reason="state",
                state=state,
            )
            raise ClaimConflictError(str(incident_id), winner_name=winner_name, current_state=state)

        incident.state = IncidentState.IN_ATTENTION.value
        incident.assigned_to = actor_id
        incident.updated_at = utcnow()
        self._record(incident, IncidentState.PENDING.value, IncidentState.IN_ATTENTION.value, actor_id)
        await self.session.commit()

        logger.info("incident_claimed", incident_id=str(incident_id), actor_id=str(actor_id))
        return await self._reload(incident_id)

    async def resolve(self, incident_id: uuid.UUID, actor_id: uuid.UUID, actor_role: str) -> Incident:
        """
        Mark an incident resolved.

        Allowed for the assignee and for supervisors and the admin. Only the
        latter may resolve an incident nobody has claimed.
        """
        incident = await self.repository.lock(incident_id)
        if incident is None:
            raise NotFoundError("incidencia", str(incident_id))

        is_override = actor_role in OVERRIDE_ROLES
        if incident.assigned_to != actor_id and not is_override:
            raise ForbiddenError(
                "No tienes permiso para resolver esta incidencia",
                context={"incident_id": str(incident_id), "role": actor_role},
            )

        if incident.state == IncidentState.RESOLVED.value:
            raise ClaimConflictError(str(incident_id), current_state=incident.state)

        previous = incident.state
        # Skipping attention is an override even for a pre-assigned worker
        if previous == IncidentState.PENDING.value and not is_override:
            raise ForbiddenError(
                "Solo un supervisor o el administrador puede resolver una incidencia sin atender",
                context={"incident_id": str(incident_id), "role": actor_role},
            )
        check_transition(previous, IncidentState.RESOLVED.value)

        incident.state = IncidentState.RESOLVED.value
        incident.updated_at = utcnow()
        self._record(incident, previous, IncidentState.RESOLVED.value, actor_id)
        await self.session.commit()

        logger.info(
            "incident_resolved",
            incident_id=str(incident_id),
            actor_id=str(actor_id),
            override=is_override
            and (incident.assigned_to != actor_id or previous == IncidentState.PENDING.value),
        )
        return await self._reload(incident_id)

    async def edit(
        self,
        incident_id: uuid.UUID,
        patch: IncidentPatch,
        actor_id: uuid.UUID,
        actor_role: str,
    ) -> Incident:
        """Admin edit of state and/or assignee, constrained by the state machine."""
        if actor_role != Role.ADMIN.value:
            raise ForbiddenError(
                "Solo el administrador puede editar incidencias",
                context={"incident_id": str(incident_id), "role": actor_role},
            )
        if patch.is_empty:
            raise ValidationError("No hay campos para actualizar")

        incident = await self.repository.lock(incident_id)
        if incident is None:
            raise NotFoundError("incidencia", str(incident_id))
        if incident.state == IncidentState.RESOLVED.value:
            raise ValidationError("La incidencia ya está resuelta", field="estado")

        if patch.assigned_to is not None and patch.assigned_to != incident.assigned_to:
            await self._require_assignable(patch.assigned_to, incident.event_id)
            incident.assigned_to = patch.assigned_to

        previous = incident.state
        if patch.state is not None and patch.state.value != previous:
            check_transition(previous, patch.state.value)
            if patch.state == IncidentState.IN_ATTENTION and incident.assigned_to is None:
                raise ValidationError(
                    "Una incidencia en atención necesita un responsable", field="asignada_a"
                )
            incident.state = patch.state.value
            self._record(incident, previous, patch.state.value, actor_id)

        incident.updated_at = utcnow()
        await self.session.commit()

        logger.info(
            "incident_edited",
            incident_id=str(incident_id),
            actor_id=str(actor_id),
            state=incident.state,
            assigned_to=str(incident.assigned_to) if incident.assigned_to else None,
        )
        return await self._reload(incident_id)

    # Helpers

    def _record(
        self,
        incident: Incident,
        from_state: str,
        to_state: str,
        actor_id: uuid.UUID,
    ) -> None:
        self.session.add(
            IncidentHistory(
                incident_id=incident.id,
                from_state=from_state,
                to_state=to_state,
                actor_id=actor_id,
                changed_at=utcnow(),
            )
        )

    async def _require_assignable(self, user_id: uuid.UUID, event_id: uuid.UUID) -> User:
        """Assignee must be an active user bound to the event, or the admin."""
        user = await self.users.get(user_id)
        if user is None or not user.is_active:
            raise ValidationError("El usuario asignado no existe", field="asignada_a")
        if user.role != Role.ADMIN.value and user.event_id != event_id:
            raise ValidationError(
                "El usuario asignado no pertenece a este evento", field="asignada_a"
            )
        return user

    async def _reload(self, incident_id: uuid.UUID) -> Incident:
        incident = await self.repository.refresh(incident_id)
        if incident is None:
            raise NotFoundError("incidencia", str(incident_id))
        return incident


__all__ = [
    "TRANSITIONS",
    "IncidentPatch",
    "IncidentService",
    "check_transition",
    "is_legal_transition",
    "validate_history",
]
