"""Task schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from eventpulse.db.models import TaskPriority, TaskState


class TaskCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., alias="titulo", min_length=3, max_length=255)
    description: str | None = Field(default=None, alias="descripcion")
    zone_id: str | None = Field(default=None, alias="zona_id", max_length=50)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, alias="prioridad")
    assigned_to: uuid.UUID | None = Field(default=None, alias="asignada_a")


class TaskUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    state: TaskState | None = Field(default=None, alias="estado")
    assigned_to: uuid.UUID | None = Field(default=None, alias="asignada_a")


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_id: uuid.UUID = Field(serialization_alias="evento_id")
    zone_id: str | None = Field(default=None, serialization_alias="zona_id")
    zone_name: str | None = Field(default=None, serialization_alias="zona_nombre")
    title: str = Field(serialization_alias="titulo")
    description: str | None = Field(default=None, serialization_alias="descripcion")
    state: str = Field(serialization_alias="estado")
    priority: str = Field(serialization_alias="prioridad")
    created_by: uuid.UUID = Field(serialization_alias="creada_por")
    assigned_to: uuid.UUID | None = Field(default=None, serialization_alias="asignada_a")
    assignee_name: str | None = Field(default=None, serialization_alias="nombre_asignado")
    completed_at: datetime | None = Field(default=None, serialization_alias="completada_en")
    created_at: datetime = Field(serialization_alias="creada_en")


__all__ = ["TaskCreateRequest", "TaskResponse", "TaskUpdateRequest"]
