# /flowbot/routes/chat.py

import structlog
from typing import Optional
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from flowbot.models.api import OutboundFrame
from flowbot.services.gateway_service import ConnectionContext, SessionGateway
from flowbot.utils.metrics import active_connections_gauge

# This file defines the bidirectional chat socket. Framing and delivery live
# here; everything about the conversation itself is delegated to the gateway.

router = APIRouter(
    tags=["Chat"]
)

log = structlog.get_logger(__name__)

gateway = SessionGateway()


async def _send(websocket: WebSocket, ctx: ConnectionContext, frame: OutboundFrame) -> None:
    """Deliver a frame unless the transport is already known to be closed."""
    if ctx.closed or websocket.client_state != WebSocketState.CONNECTED:
        log.debug("Skipping delivery to closed connection.", session_id=ctx.session_id, frame_type=frame.type)
        return
    await websocket.send_json(frame.model_dump())


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, session_id: Optional[str] = Query(None)):
    """Conversational endpoint: one JSON frame in, exactly one JSON frame out."""
    await websocket.accept()
    ctx = gateway.open_connection(session_id)
    active_connections_gauge.inc()
    log.info("Chat connection opened.", session_id=ctx.session_id, resumed=session_id is not None)

    try:
        await _send(websocket, ctx, await gateway.on_connect(ctx))

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await _send(websocket, ctx, await gateway.on_message(ctx, raw))
    except WebSocketDisconnect:
        pass
    finally:
        gateway.on_disconnect(ctx)
        active_connections_gauge.dec()
