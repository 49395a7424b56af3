"""Login and staff account schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from eventpulse.db.models import Role


class LoginRequest(BaseModel):
    """Credentials for POST /auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    handle: str = Field(..., alias="nombre_usuario", min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


class UserCreateRequest(BaseModel):
    """Worker account. It is bound to the active event on creation."""

    model_config = ConfigDict(populate_by_name=True)

    handle: str = Field(..., alias="nombre_usuario", min_length=3, max_length=50)
    display_name: str = Field(..., alias="nombre", min_length=2, max_length=255)
    password: str = Field(..., min_length=4)
    role: Role = Field(..., alias="rol")


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    handle: str = Field(serialization_alias="nombre_usuario")
    display_name: str = Field(serialization_alias="nombre")
    role: str = Field(serialization_alias="rol")
    event_id: uuid.UUID | None = Field(default=None, serialization_alias="evento_id")
    is_active: bool = Field(default=True, serialization_alias="activo")
    created_at: datetime = Field(serialization_alias="creado_en")


class LoginResponse(BaseModel):
    token: str
    user: UserResponse = Field(serialization_alias="usuario")


__all__ = ["LoginRequest", "LoginResponse", "UserCreateRequest", "UserResponse"]
