"""Zone schemas."""

import uuid

from pydantic import BaseModel, ConfigDict, Field


class ZoneCreateRequest(BaseModel):
    """Zone slug and display name. The slug is lowercased and trimmed."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., alias="nombre", min_length=1, max_length=100)


class ZoneResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: uuid.UUID = Field(serialization_alias="evento_id")
    name: str = Field(serialization_alias="nombre")


__all__ = ["ZoneCreateRequest", "ZoneResponse"]
