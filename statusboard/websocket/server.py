"""
WebSocket Server

Live dashboard stream. Clients connect to ``/ws`` and receive the latest
metrics message right away, then every broadcast. Clients may send
heartbeats, which are echoed back.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.requests import HTTPConnection

from .connection_manager import BroadcastHub, Subscriber
from .message_protocol import (
    HeartbeatMessage,
    MessageKind,
    WebSocketMessage,
    create_error_message,
    server_message_adapter,
)

logger = logging.getLogger(__name__)

# Close code for "try again later"
WS_CLOSE_TRY_AGAIN_LATER = 1013

# Create WebSocket router
websocket_router = APIRouter(prefix="/ws", tags=["websocket"])


def get_broadcast_hub(connection: HTTPConnection) -> BroadcastHub:
    return connection.app.state.hub


@websocket_router.websocket("")
async def websocket_endpoint(
    websocket: WebSocket,
    hub: BroadcastHub = Depends(get_broadcast_hub),
) -> None:
    """
    Live update stream

    Protocol:
    1. Client connects; the server sends the latest metrics message
    2. Server pushes metrics and incidents messages as they are published
    3. Client heartbeats are echoed; any other client message gets an error
    """
    await websocket.accept()
    if hub.is_full:
        logger.warning(f"Rejecting WebSocket client, {hub.max_connections} connections open")
        await websocket.close(code=WS_CLOSE_TRY_AGAIN_LATER, reason="Too many connections")
        return

    subscriber = await hub.subscribe(websocket)
    try:
        while subscriber.is_open:
            raw_message = await websocket.receive_text()
            await _handle_client_message(hub, subscriber, raw_message)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket client {subscriber.client_id} closed the stream")
    except Exception as e:
        logger.error(f"WebSocket error for {subscriber.client_id}: {e}")
    finally:
        await hub.unsubscribe(subscriber)


async def _handle_client_message(hub: BroadcastHub, subscriber: Subscriber, raw_message: str) -> None:
    reply: WebSocketMessage
    try:
        message = server_message_adapter.validate_json(raw_message)
    except ValidationError as e:
        try:
            json.loads(raw_message)
        except json.JSONDecodeError:
            reply = create_error_message("INVALID_JSON", "Invalid JSON message")
        else:
            reply = create_error_message(
                "INVALID_MESSAGE", "Unrecognized message", {"errors": e.error_count()}
            )
    else:
        if isinstance(message, HeartbeatMessage):
            reply = HeartbeatMessage(client_id=subscriber.client_id)
        else:
            reply = create_error_message(
                "UNSUPPORTED_MESSAGE", f"Clients may not send {message.kind.value} messages"
            )

    await subscriber.send_text(reply.model_dump_json(), hub.send_timeout)


@websocket_router.get("/status")
async def websocket_status(hub: BroadcastHub = Depends(get_broadcast_hub)) -> dict[str, Any]:
    """Get WebSocket server status and connection statistics"""
    return {
        "websocket_server": "running",
        "connections": hub.get_connection_stats(),
        "endpoints": {"stream": "/ws", "status": "/ws/status"},
        "supported_message_types": [kind.value for kind in MessageKind],
    }
