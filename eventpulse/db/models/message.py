"""Chat message model."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventpulse.db.base import Base, utcnow

MAX_MESSAGE_LENGTH = 500


class Message(Base):
    """Message posted to an event's group chat."""

    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # Relationships
    author: Mapped["User"] = relationship("User", lazy="joined")

    __table_args__ = (
        CheckConstraint(
            f"length(content) BETWEEN 1 AND {MAX_MESSAGE_LENGTH}",
            name="ck_messages_content_length",
        ),
        Index("ix_messages_event_id", "event_id"),
        Index("ix_messages_sent_at", "sent_at"),
    )

    @property
    def author_name(self) -> str | None:
        return self.author.display_name if self.author else None

    @property
    def author_role(self) -> str | None:
        return self.author.role if self.author else None


# Forward references
from eventpulse.db.models.user import User  # noqa: E402
