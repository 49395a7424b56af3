"""Planned work items assigned to staff."""

import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.error import ForbiddenError, NotFoundError, ValidationError
from eventpulse.core.zones import ZoneService, normalize_slug
from eventpulse.db.base import utcnow
from eventpulse.db.models import Role, Task, TaskPriority, TaskState
from eventpulse.db.repository import TaskRepository, UserRepository
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TaskPatch:
    """Task edit. None means unchanged."""

    state: TaskState | None = None
    assigned_to: uuid.UUID | None = None

    @property
    def is_empty(self) -> bool:
        return self.state is None and self.assigned_to is None


def apply_state(task: Task, state: TaskState) -> None:
    """Set the state keeping completed_at in step with it."""
    if state == TaskState.COMPLETED:
        if task.state != TaskState.COMPLETED.value or task.completed_at is None:
            task.completed_at = utcnow()
    else:
        task.completed_at = None
    task.state = state.value


class TaskService:
    """Service for tasks within an event."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = TaskRepository(session)
        self.users = UserRepository(session)
        self.zones = ZoneService(session)

    async def get(self, task_id: uuid.UUID) -> Task:
        task = await self.repository.get(task_id)
        if task is None:
            raise NotFoundError("tarea", str(task_id))
        return task

    async def list_for_event(self, event_id: uuid.UUID) -> list[Task]:
        return await self.repository.list_by_event(event_id)

    async def create(
        self,
        event_id: uuid.UUID,
        title: str,
        priority: TaskPriority,
        creator_id: uuid.UUID,
        description: str | None = None,
        zone_id: str | None = None,
        assignee_id: uuid.UUID | None = None,
    ) -> Task:
        zone_id = normalize_slug(zone_id) if zone_id else None
        if zone_id:
            await self.zones.require(zone_id, event_id)
        if assignee_id is not None:
            await self._require_assignable(assignee_id, event_id)

        task = await self.repository.create(
            event_id=event_id,
            zone_id=zone_id,
            title=title,
            description=description,
            state=TaskState.PENDING.value,
            priority=priority.value,
            created_by=creator_id,
            assigned_to=assignee_id,
        )
        await self.session.commit()

        logger.info(
            "task_created",
            task_id=str(task.id),
            event_id=str(event_id),
            priority=priority.value,
        )
        return await self._reload(task.id)

    async def edit(
        self,
        task_id: uuid.UUID,
        patch: TaskPatch,
        actor_id: uuid.UUID,
        actor_role: str,
    ) -> Task:
        """
        Change a task's state or assignee.

        Workers may move the state of tasks assigned to them or unassigned
        (taking an unassigned task assigns it to them). Only the admin
        reassigns.
        """
        if patch.is_empty:
            raise ValidationError("No hay campos para actualizar")

        is_admin = actor_role == Role.ADMIN.value
        if patch.assigned_to is not None and not is_admin:
            raise ForbiddenError("Solo el administrador puede reasignar tareas")

        task = await self.repository.lock(task_id)
        if task is None:
            raise NotFoundError("tarea", str(task_id))

        if not is_admin and task.assigned_to not in (None, actor_id):
            raise ForbiddenError(
                "La tarea está asignada a otro usuario",
                context={"task_id": str(task_id)},
            )

        if patch.assigned_to is not None and patch.assigned_to != task.assigned_to:
            await self._require_assignable(patch.assigned_to, task.event_id)
            task.assigned_to = patch.assigned_to

        if patch.state is not None:
            if (
                not is_admin
                and task.assigned_to is None
                and patch.state != TaskState.PENDING
            ):
                task.assigned_to = actor_id
            apply_state(task, patch.state)

        await self.session.commit()

        logger.info(
            "task_edited",
            task_id=str(task_id),
            actor_id=str(actor_id),
            state=task.state,
        )
        return await self._reload(task_id)

    async def _require_assignable(self, user_id: uuid.UUID, event_id: uuid.UUID) -> None:
        user = await self.users.get(user_id)
        if user is None or not user.is_active:
            raise ValidationError("El usuario asignado no existe", field="asignada_a")
        if user.role != Role.ADMIN.value and user.event_id != event_id:
            raise ValidationError(
                "El usuario asignado no pertenece a este evento", field="asignada_a"
            )

    async def _reload(self, task_id: uuid.UUID) -> Task:
        task = await self.repository.refresh(task_id)
        if task is None:
            raise NotFoundError("tarea", str(task_id))
        return task


__all__ = ["TaskPatch", "TaskService", "apply_state"]
