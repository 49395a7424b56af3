"""Chat schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MessageCreateRequest(BaseModel):
    """Length and blank checks happen in the chat service so they share its messages."""

    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., alias="contenido")


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_id: uuid.UUID = Field(serialization_alias="evento_id")
    user_id: uuid.UUID = Field(serialization_alias="usuario_id")
    author_name: str | None = Field(default=None, serialization_alias="nombre_usuario")
    author_role: str | None = Field(default=None, serialization_alias="rol_usuario")
    content: str = Field(serialization_alias="contenido")
    sent_at: datetime = Field(serialization_alias="enviado_en")


__all__ = ["MessageCreateRequest", "MessageResponse"]
