"""Zone model: a named physical area inside one event."""

import uuid

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eventpulse.db.base import Base


class Zone(Base):
    """Zone keyed by an admin-chosen slug, unique within its event."""

    __tablename__ = "zones"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
