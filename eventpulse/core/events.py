"""Event lifecycle service and the active-event invariant."""

import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.error import ConflictError, NotFoundError, ValidationError
from eventpulse.db.base import utcnow
from eventpulse.db.models import Event, EventState, Role
from eventpulse.db.repository import EventRepository
from eventpulse.lib.logging import get_logger
from eventpulse.lib.security import TokenClaims

logger = get_logger(__name__)

NO_ACTIVE_EVENT = "No hay evento activo"


def ensure_in_scope(
    user: TokenClaims,
    event_id: uuid.UUID,
    resource_type: str,
    resource_id: object,
) -> None:
    """Workers only reach resources of the event they are bound to; others look missing."""
    if user.role == Role.ADMIN.value or user.event_id is None:
        return
    if user.event_id != event_id:
        raise NotFoundError(resource_type, str(resource_id))


class EventService:
    """Service for creating, ending and resolving events."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = EventRepository(session)

    async def get(self, event_id: uuid.UUID) -> Event:
        event = await self.repository.get(event_id)
        if event is None:
            raise NotFoundError("evento", str(event_id))
        return event

    async def get_active(self) -> Event | None:
        return await self.repository.get_active()

    async def require_active(self) -> Event:
        """Active event for writes that bind to it; 400 when there is none."""
        event = await self.repository.get_active()
        if event is None:
            raise ValidationError(NO_ACTIVE_EVENT)
        return event

    async def resolve_event_id(
        self,
        user: TokenClaims,
        requested: uuid.UUID | None = None,
    ) -> uuid.UUID | None:
        """
        Event a request is scoped to.

        Order: the admin's explicit ``evento_id``, then the user's bound
        event, then the active event. None when nothing applies.
        """
        if requested is not None and user.role == Role.ADMIN.value:
            return requested
        if user.event_id is not None:
            return user.event_id
        active = await self.repository.get_active()
        return active.id if active else None

    async def list_for(self, user: TokenClaims) -> list[Event]:
        """Admin sees every event; workers only the one they are bound to."""
        if user.role == Role.ADMIN.value:
            return await self.repository.list_all()
        if user.event_id is None:
            return []
        event = await self.repository.get(user.event_id)
        return [event] if event else []

    async def create(
        self,
        name: str,
        description: str | None,
        creator_id: uuid.UUID,
    ) -> tuple[Event, list[Event]]:
        """
        Create a new active event, ending the current one in the same transaction.

        Returns:
            The new event and the events that were ended to make room for it.

        Raises:
            ConflictError: A concurrent creation committed an active event first.
        """
        ended = await self.repository.lock_active()
        now = utcnow()
        for previous in ended:
            previous.state = EventState.ENDED.value
            previous.ended_at = now

        try:
            # End the previous event before inserting so the partial unique index holds
            await self.session.flush()
            event = await self.repository.create(
                name=name,
                description=description,
                state=EventState.ACTIVE.value,
                created_by=creator_id,
                created_at=now,
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("event_create_conflict", error=str(e.orig))
            raise ConflictError("Ya existe un evento activo, reintente") from e

        for previous in ended:
            logger.info("event_ended", event_id=str(previous.id), reason="superseded")
        logger.info("event_created", event_id=str(event.id), name=name)
        return event, ended

    async def end(self, event_id: uuid.UUID) -> Event:
        event = await self.repository.get_for_update(event_id)
        if event is None:
            raise NotFoundError("evento", str(event_id))
        if event.state == EventState.ENDED.value:
            raise ValidationError("El evento ya está terminado", field="estado")

        event.state = EventState.ENDED.value
        event.ended_at = utcnow()
        await self.session.commit()

        logger.info("event_ended", event_id=str(event.id), reason="terminated")
        return event


__all__ = ["EventService", "NO_ACTIVE_EVENT", "ensure_in_scope"]
