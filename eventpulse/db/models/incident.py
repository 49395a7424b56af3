"""Incident and incident history models."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventpulse.db.base import Base, utcnow


class IncidentType(str, Enum):
    """Incident type enumeration."""

    SPILL = "derrame"
    SECURITY = "seguridad"
    RESTOCK = "reabastecimiento"
    MEDICAL = "medico"
    OTHER = "otro"


class IncidentState(str, Enum):
    """Incident state enumeration."""

    PENDING = "pendiente"
    IN_ATTENTION = "en_atencion"
    RESOLVED = "resuelta"


class Incident(Base):
    """Incident model. State changes are recorded in IncidentHistory."""

    __tablename__ = "incidents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    zone_id: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=IncidentState.PENDING.value
    )
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    # Relationships
    assignee: Mapped["User | None"] = relationship(
        "User", foreign_keys=[assigned_to], lazy="joined"
    )
    zone: Mapped["Zone"] = relationship("Zone", lazy="joined")
    history: Mapped[list["IncidentHistory"]] = relationship(
        "IncidentHistory",
        back_populates="incident",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (
        ForeignKeyConstraint(
            ["zone_id", "event_id"],
            ["zones.id", "zones.event_id"],
            name="fk_incidents_zone",
        ),
        CheckConstraint(
            "type IN ('derrame', 'seguridad', 'reabastecimiento', 'medico', 'otro')",
            name="ck_incidents_type",
        ),
        CheckConstraint(
            "state IN ('pendiente', 'en_atencion', 'resuelta')",
            name="ck_incidents_state",
        ),
        Index("ix_incidents_event_id", "event_id"),
        Index("ix_incidents_state", "state"),
    )

    @property
    def assignee_name(self) -> str | None:
        return self.assignee.display_name if self.assignee is not None else None

    @property
    def zone_name(self) -> str | None:
        return self.zone.name if self.zone is not None else None


class IncidentHistory(Base):
    """Append-only transition log. Rows are never updated."""

    __tablename__ = "incident_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    incident_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False
    )
    from_state: Mapped[str] = mapped_column(String(20), nullable=False)
    to_state: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # Relationships
    incident: Mapped["Incident"] = relationship("Incident", back_populates="history")
    actor: Mapped["User | None"] = relationship("User", lazy="joined")

    __table_args__ = (
        Index("ix_incident_history_incident_id", "incident_id"),
        Index("ix_incident_history_changed_at", "changed_at"),
    )

    @property
    def actor_name(self) -> str | None:
        return self.actor.display_name if self.actor is not None else None


# Forward references
from eventpulse.db.models.user import User  # noqa: E402
from eventpulse.db.models.zone import Zone  # noqa: E402
