"""Realtime envelope carried over the broker and WebSocket frames."""

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EnvelopeKind(str, Enum):
    """Envelope kinds understood by clients."""

    INCIDENT_CREATED = "incidencia_nueva"
    INCIDENT_UPDATED = "incidencia_actualizada"
    INCIDENT_CONFLICT = "incidencia_conflicto"
    TASK_CREATED = "tarea_nueva"
    TASK_UPDATED = "tarea_actualizada"
    MESSAGE_CREATED = "mensaje_nuevo"
    EVENT_ENDED = "evento_terminado"
    PING = "ping"


class Envelope(BaseModel):
    """JSON frame ``{"tipo", "evento_id", "payload"}``."""

    model_config = ConfigDict(populate_by_name=True)

    kind: EnvelopeKind = Field(alias="tipo")
    event_id: uuid.UUID = Field(alias="evento_id")
    payload: dict[str, Any] = Field(default_factory=dict)

    def encode(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def decode(cls, data: bytes | str) -> "Envelope":
        """Parse a frame; raises pydantic.ValidationError when malformed."""
        return cls.model_validate_json(data)


__all__ = ["Envelope", "EnvelopeKind"]
