"""WebSocket endpoint bridging sockets to the event hub."""

from fastapi import APIRouter, Query, WebSocket, status

from eventpulse.core.events import EventService
from eventpulse.core.hub import Hub
from eventpulse.db import SessionLocal
from eventpulse.lib.logging import get_logger
from eventpulse.lib.security import TokenError, decode_access_token

logger = get_logger(__name__)

router = APIRouter(tags=["ws"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = Query(default=None)) -> None:
    """
    Authenticate with ``?token=`` and stream the event's envelopes.

    Workers join the event they are bound to; the admin joins the active
    event. Rejected connections are closed with a policy violation.
    """
    if not token:
        logger.warning("ws_rejected", reason="missing_token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        claims = decode_access_token(token)
    except TokenError:
        logger.warning("ws_rejected", reason="invalid_token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    event_id = claims.event_id
    if event_id is None:
        factory = getattr(websocket.app.state, "session_factory", None) or SessionLocal
        async with factory() as session:
            event_id = await EventService(session).resolve_event_id(claims)
    if event_id is None:
        logger.warning("ws_rejected", reason="no_active_event", user_id=str(claims.user_id))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    hub: Hub = websocket.app.state.hub
    await websocket.accept()
    client = hub.new_client(websocket, claims.user_id, event_id)
    await hub.register(client)
    logger.info("ws_connected", user_id=str(claims.user_id), event_id=str(event_id))

    await hub.serve(client)
    logger.info("ws_disconnected", user_id=str(claims.user_id), event_id=str(event_id))
