"""SQLAlchemy declarative base."""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Timezone-aware current time used for every timestamp column."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):  # type: ignore[misc]
    """SQLAlchemy declarative base for all models."""

    pass
