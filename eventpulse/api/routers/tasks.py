"""Task endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.auth import get_current_user, require_admin
from eventpulse.api.models import to_payload
from eventpulse.api.models.tasks import TaskCreateRequest, TaskResponse, TaskUpdateRequest
from eventpulse.core.envelope import EnvelopeKind
from eventpulse.core.events import EventService, ensure_in_scope
from eventpulse.core.hub import Hub, get_hub
from eventpulse.core.tasks import TaskPatch, TaskService
from eventpulse.db import get_db
from eventpulse.lib.security import TokenClaims

router = APIRouter(prefix="/api/v1/tareas", tags=["tareas"])


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    event_id: uuid.UUID | None = Query(default=None, alias="evento_id"),
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[TaskResponse]:
    """Tasks of the scoped event by priority (alta first), then newest."""
    scope = await EventService(db).resolve_event_id(user, event_id)
    if scope is None:
        return []
    tasks = await TaskService(db).list_for_event(scope)
    return [TaskResponse.model_validate(task) for task in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: uuid.UUID,
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TaskResponse:
    task = await TaskService(db).get(task_id)
    ensure_in_scope(user, task.event_id, "tarea", task_id)
    return TaskResponse.model_validate(task)


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    body: TaskCreateRequest,
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> TaskResponse:
    event = await EventService(db).require_active()
    task = await TaskService(db).create(
        event_id=event.id,
        title=body.title,
        priority=body.priority,
        creator_id=admin.user_id,
        description=body.description,
        zone_id=body.zone_id,
        assignee_id=body.assigned_to,
    )
    response = TaskResponse.model_validate(task)
    await hub.publish(event.id, EnvelopeKind.TASK_CREATED, to_payload(response))
    return response


@router.patch("/{task_id}", response_model=TaskResponse)
async def edit_task(
    task_id: uuid.UUID,
    body: TaskUpdateRequest,
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> TaskResponse:
    service = TaskService(db)
    current = await service.get(task_id)
    ensure_in_scope(user, current.event_id, "tarea", task_id)

    task = await service.edit(
        task_id,
        TaskPatch(state=body.state, assigned_to=body.assigned_to),
        actor_id=user.user_id,
        actor_role=user.role,
    )
    response = TaskResponse.model_validate(task)
    await hub.publish(task.event_id, EnvelopeKind.TASK_UPDATED, to_payload(response))
    return response
