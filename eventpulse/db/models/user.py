"""User model for the admin and event staff."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eventpulse.db.base import Base, utcnow


class Role(str, Enum):
    """Staff role enumeration."""

    ADMIN = "admin"
    CLEANING = "aseo"
    SECURITY = "guardia"
    MEDICAL = "medico"
    LOGISTICS = "logistica"
    SUPERVISOR = "supervisor"


# Roles allowed to resolve incidents they are not assigned to
OVERRIDE_ROLES = frozenset({Role.ADMIN.value, Role.SUPERVISOR.value})


class User(Base):
    """User model. Workers are bound to the event that was active when they were created."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    handle: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.CLEANING.value)
    event_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("events.id", ondelete="SET NULL", use_alter=True, name="fk_users_event"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'aseo', 'guardia', 'medico', 'logistica', 'supervisor')",
            name="ck_users_role",
        ),
        Index("ix_users_event_id", "event_id"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value
