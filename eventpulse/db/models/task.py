"""Task model for planned work items."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventpulse.db.base import Base, utcnow


class TaskState(str, Enum):
    """Task state enumeration."""

    PENDING = "pendiente"
    IN_PROGRESS = "en_progreso"
    COMPLETED = "completada"


class TaskPriority(str, Enum):
    """Task priority enumeration."""

    HIGH = "alta"
    MEDIUM = "media"
    LOW = "baja"


class Task(Base):
    """Task model. completed_at is set exactly when the state is completada."""

    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    # Optional and not constrained: deleting a zone clears it instead
    zone_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default=TaskState.PENDING.value)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=TaskPriority.MEDIUM.value
    )
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # Relationships
    assignee: Mapped["User | None"] = relationship(
        "User", foreign_keys=[assigned_to], lazy="joined"
    )
    zone: Mapped["Zone | None"] = relationship(
        "Zone",
        primaryjoin="and_(foreign(Task.zone_id) == Zone.id, foreign(Task.event_id) == Zone.event_id)",
        viewonly=True,
        lazy="joined",
    )

    __table_args__ = (
        CheckConstraint(
            "state IN ('pendiente', 'en_progreso', 'completada')",
            name="ck_tasks_state",
        ),
        CheckConstraint("priority IN ('alta', 'media', 'baja')", name="ck_tasks_priority"),
        CheckConstraint(
            "(state = 'completada') = (completed_at IS NOT NULL)",
            name="ck_tasks_completed_at",
        ),
        Index("ix_tasks_event_id", "event_id"),
        Index("ix_tasks_state", "state"),
    )

    @property
    def assignee_name(self) -> str | None:
        return self.assignee.display_name if self.assignee is not None else None

    @property
    def zone_name(self) -> str | None:
        return self.zone.name if self.zone is not None else None


# Forward references
from eventpulse.db.models.user import User  # noqa: E402
from eventpulse.db.models.zone import Zone  # noqa: E402
