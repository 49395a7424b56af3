"""Event chat endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventpulse.api.middleware.auth import get_current_user
from eventpulse.api.middleware.error import ValidationError
from eventpulse.api.models import to_payload
from eventpulse.api.models.chat import MessageCreateRequest, MessageResponse
from eventpulse.core.chat import ChatService
from eventpulse.core.envelope import EnvelopeKind
from eventpulse.core.events import NO_ACTIVE_EVENT, EventService
from eventpulse.core.hub import Hub, get_hub
from eventpulse.db import get_db
from eventpulse.lib.security import TokenClaims

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.get("/historial", response_model=list[MessageResponse])
async def chat_history(
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[MessageResponse]:
    """Last 50 messages of the caller's event in chronological order."""
    scope = await EventService(db).resolve_event_id(user)
    if scope is None:
        return []
    messages = await ChatService(db).history(scope)
    return [MessageResponse.model_validate(message) for message in messages]


@router.post("/mensaje", response_model=MessageResponse, status_code=201)
async def send_message(
    body: MessageCreateRequest,
    user: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    hub: Hub = Depends(get_hub),
) -> MessageResponse:
    scope = await EventService(db).resolve_event_id(user)
    if scope is None:
        raise ValidationError(NO_ACTIVE_EVENT)

    message = await ChatService(db).send(scope, user.user_id, body.content)
    response = MessageResponse.model_validate(message)
    await hub.publish(scope, EnvelopeKind.MESSAGE_CREATED, to_payload(response))
    return response
