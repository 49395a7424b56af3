"""Repository pattern for database operations."""

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import lazyload

from eventpulse.db.base import Base
from eventpulse.db.models import (
    Event,
    EventState,
    Incident,
    IncidentHistory,
    Message,
    Role,
    Task,
    TaskPriority,
    User,
    Zone,
)

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations."""

    def __init__(self, session: AsyncSession, model: type[T]):
        self.session = session
        self.model = model

    async def create(self, **kwargs: Any) -> T:
        """Create a new entity."""
        entity = self.model(**kwargs)
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def get(self, id: Any) -> T | None:
        """Get entity by primary key."""
        return await self.session.get(self.model, id)

    async def refresh(self, id: Any) -> T | None:
        """Reload an entity and its eager relationships from the database."""
        return await self.session.get(self.model, id, populate_existing=True)


class EventRepository(BaseRepository[Event]):
    """Repository for Event operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Event)

    async def get_active(self) -> Event | None:
        """Most recent event in the active state."""
        result = await self.session.execute(
            select(Event)
            .where(Event.state == EventState.ACTIVE.value)
            .order_by(Event.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def lock_active(self) -> list[Event]:
        """Lock every active event row for the current transaction."""
        result = await self.session.execute(
            select(Event).where(Event.state == EventState.ACTIVE.value).with_for_update()
        )
        return list(result.scalars().all())

    async def get_for_update(self, event_id: uuid.UUID) -> Event | None:
        result = await self.session.execute(
            select(Event)
            .where(Event.id == event_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Event]:
        result = await self.session.execute(select(Event).order_by(Event.created_at.desc()))
        return list(result.scalars().all())


class ZoneRepository(BaseRepository[Zone]):
    """Repository for Zone operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Zone)

    async def get_in_event(self, zone_id: str, event_id: uuid.UUID) -> Zone | None:
        return await self.session.get(Zone, (zone_id, event_id))

    async def list_by_event(self, event_id: uuid.UUID) -> list[Zone]:
        result = await self.session.execute(
            select(Zone).where(Zone.event_id == event_id).order_by(Zone.id)
        )
        return list(result.scalars().all())

    async def count_incidents(self, zone_id: str, event_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(Incident.id)).where(
                Incident.zone_id == zone_id, Incident.event_id == event_id
            )
        )
        return int(result.scalar_one())

    async def clear_task_zone(self, zone_id: str, event_id: uuid.UUID) -> None:
        """Detach tasks from a zone that is about to be deleted."""
        await self.session.execute(
            update(Task)
            .where(Task.zone_id == zone_id, Task.event_id == event_id)
            .values(zone_id=None)
            .execution_options(synchronize_session=False)
        )


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_handle(self, handle: str) -> User | None:
        result = await self.session.execute(select(User).where(User.handle == handle))
        return result.scalar_one_or_none()

    async def list_workers(self, event_id: uuid.UUID) -> list[User]:
        result = await self.session.execute(
            select(User)
            .where(User.event_id == event_id, User.role != Role.ADMIN.value)
            .order_by(User.display_name)
        )
        return list(result.scalars().all())


class IncidentRepository(BaseRepository[Incident]):
    """Repository for Incident operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Incident)

    async def try_lock(self, incident_id: uuid.UUID) -> Incident | None:
        """
        Non-blocking exclusive lock on an incident row.

        Returns None both when the row does not exist and when another
        transaction holds the lock (SKIP LOCKED).
        """
        result = await self.session.execute(
            select(Incident)
            .where(Incident.id == incident_id)
            .options(lazyload("*"))
            .with_for_update(skip_locked=True)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock(self, incident_id: uuid.UUID) -> Incident | None:
        """Blocking exclusive lock on an incident row."""
        result = await self.session.execute(
            select(Incident)
            .where(Incident.id == incident_id)
            .options(lazyload("*"))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_event(self, event_id: uuid.UUID, state: str | None = None) -> list[Incident]:
        query = select(Incident).where(Incident.event_id == event_id)
        if state:
            query = query.where(Incident.state == state)
        result = await self.session.execute(query.order_by(Incident.created_at.desc()))
        return list(result.scalars().unique().all())


class IncidentHistoryRepository(BaseRepository[IncidentHistory]):
    """Repository for IncidentHistory operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, IncidentHistory)

    async def get_by_incident(self, incident_id: uuid.UUID) -> list[IncidentHistory]:
        """Transitions for an incident in the order they were recorded."""
        result = await self.session.execute(
            select(IncidentHistory)
            .where(IncidentHistory.incident_id == incident_id)
            .order_by(IncidentHistory.changed_at, IncidentHistory.id)
        )
        return list(result.scalars().unique().all())


PRIORITY_ORDER = case(
    {
        TaskPriority.HIGH.value: 0,
        TaskPriority.MEDIUM.value: 1,
        TaskPriority.LOW.value: 2,
    },
    value=Task.priority,
    else_=3,
)


class TaskRepository(BaseRepository[Task]):
    """Repository for Task operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Task)

    async def lock(self, task_id: uuid.UUID) -> Task | None:
        result = await self.session.execute(
            select(Task)
            .where(Task.id == task_id)
            .options(lazyload("*"))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_event(self, event_id: uuid.UUID) -> list[Task]:
        """Tasks ordered by priority, then newest first."""
        result = await self.session.execute(
            select(Task)
            .where(Task.event_id == event_id)
            .order_by(PRIORITY_ORDER, Task.created_at.desc())
        )
        return list(result.scalars().unique().all())


class MessageRepository(BaseRepository[Message]):
    """Repository for Message operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Message)

    async def latest(self, event_id: uuid.UUID, limit: int = 50) -> list[Message]:
        """Last `limit` messages of an event in chronological order."""
        result = await self.session.execute(
            select(Message)
            .where(Message.event_id == event_id)
            .order_by(Message.sent_at.desc(), Message.id.desc())
            .limit(limit)
        )
        messages = list(result.scalars().unique().all())
        messages.reverse()
        return messages

