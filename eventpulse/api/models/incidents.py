"""Incident schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from eventpulse.db.models import IncidentState, IncidentType


class IncidentCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    zone_id: str = Field(..., alias="zona_id", min_length=1, max_length=50)
    type: IncidentType = Field(..., alias="tipo")
    description: str = Field(..., alias="descripcion", min_length=5)
    assigned_to: uuid.UUID | None = Field(default=None, alias="asignada_a")


class IncidentUpdateRequest(BaseModel):
    """Admin edit. Omitted fields stay unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    state: IncidentState | None = Field(default=None, alias="estado")
    assigned_to: uuid.UUID | None = Field(default=None, alias="asignada_a")


class IncidentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_id: uuid.UUID = Field(serialization_alias="evento_id")
    zone_id: str = Field(serialization_alias="zona_id")
    zone_name: str | None = Field(default=None, serialization_alias="zona_nombre")
    type: str = Field(serialization_alias="tipo")
    description: str = Field(serialization_alias="descripcion")
    state: str = Field(serialization_alias="estado")
    created_by: uuid.UUID = Field(serialization_alias="creada_por")
    assigned_to: uuid.UUID | None = Field(default=None, serialization_alias="asignada_a")
    assignee_name: str | None = Field(default=None, serialization_alias="nombre_asignado")
    created_at: datetime = Field(serialization_alias="creada_en")
    updated_at: datetime = Field(serialization_alias="actualizada_en")


class IncidentHistoryResponse(BaseModel):
    """One recorded transition."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    incident_id: uuid.UUID = Field(serialization_alias="incidencia_id")
    from_state: str = Field(serialization_alias="estado_anterior")
    to_state: str = Field(serialization_alias="estado_nuevo")
    actor_id: uuid.UUID | None = Field(default=None, serialization_alias="usuario_id")
    actor_name: str | None = Field(default=None, serialization_alias="nombre_usuario")
    changed_at: datetime = Field(serialization_alias="cambiado_en")


class ClaimConflictPayload(BaseModel):
    """Body of the ``incidencia_conflicto`` envelope."""

    incident_id: uuid.UUID = Field(serialization_alias="incidencia_id")
    message: str = Field(serialization_alias="mensaje")
    winner_name: str | None = Field(default=None, serialization_alias="atendida_por")


__all__ = [
    "ClaimConflictPayload",
    "IncidentCreateRequest",
    "IncidentHistoryResponse",
    "IncidentResponse",
    "IncidentUpdateRequest",
]
