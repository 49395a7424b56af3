"""Event schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class EventCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., alias="nombre", min_length=3, max_length=255)
    description: str | None = Field(default=None, alias="descripcion")


class EventResponse(BaseModel):
    """
    API response schema for an event.

    Attributes:
        id: Event identifier
        name: Display name
        description: Optional free text
        state: ``activo`` or ``terminado``
        created_by: Admin who created the event
        created_at: Creation time (timezone-aware UTC)
        ended_at: When the event was ended, null while active
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str = Field(serialization_alias="nombre")
    description: str | None = Field(default=None, serialization_alias="descripcion")
    state: str = Field(serialization_alias="estado")
    created_by: uuid.UUID = Field(serialization_alias="creado_por")
    created_at: datetime = Field(serialization_alias="creado_en")
    ended_at: datetime | None = Field(default=None, serialization_alias="terminado_en")


__all__ = ["EventCreateRequest", "EventResponse"]
