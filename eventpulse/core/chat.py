"""Event group chat."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.error import ValidationError
from eventpulse.db.models import MAX_MESSAGE_LENGTH, Message
from eventpulse.db.repository import MessageRepository
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)

HISTORY_LIMIT = 50


def validate_content(content: str) -> str:
    """Messages carry 1 to 500 codepoints and must not be blank."""
    if not content or not content.strip():
        raise ValidationError("El mensaje no puede estar vacío", field="contenido")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"El mensaje supera los {MAX_MESSAGE_LENGTH} caracteres", field="contenido"
        )
    return content


class ChatService:
    """Service for chat messages."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = MessageRepository(session)

    async def history(self, event_id: uuid.UUID, limit: int = HISTORY_LIMIT) -> list[Message]:
        return await self.repository.latest(event_id, limit)

    async def send(self, event_id: uuid.UUID, user_id: uuid.UUID, content: str) -> Message:
        message = await self.repository.create(
            event_id=event_id,
            user_id=user_id,
            content=validate_content(content),
        )
        await self.session.commit()

        logger.info("message_sent", message_id=str(message.id), event_id=str(event_id))
        reloaded = await self.repository.refresh(message.id)
        return reloaded if reloaded is not None else message


__all__ = ["ChatService", "HISTORY_LIMIT", "validate_content"]
