"""Event model: the top-level container for zones, staff and incidents."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from eventpulse.db.base import Base, utcnow


class EventState(str, Enum):
    """Event lifecycle state."""

    ACTIVE = "activo"
    ENDED = "terminado"


class Event(Base):
    """Event model. At most one row is active at a time."""

    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EventState.ACTIVE.value
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("state IN ('activo', 'terminado')", name="ck_events_state"),
        CheckConstraint(
            "(state = 'terminado') = (ended_at IS NOT NULL)",
            name="ck_events_ended_at",
        ),
        Index("ix_events_created_at", "created_at"),
        Index(
            "uq_events_single_active",
            "state",
            unique=True,
            postgresql_where=text("state = 'activo'"),
            sqlite_where=text("state = 'activo'"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.state == EventState.ACTIVE.value
