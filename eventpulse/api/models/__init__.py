"""Pydantic schemas for API request/response models.

Python attributes follow the ORM names; the wire uses the Spanish field
names through aliases.
"""

from typing import Any

from pydantic import BaseModel


def to_payload(model: BaseModel) -> dict[str, Any]:
    """JSON-ready dict with wire field names, used as a realtime envelope payload."""
    return model.model_dump(mode="json", by_alias=True)


__all__ = ["to_payload"]
