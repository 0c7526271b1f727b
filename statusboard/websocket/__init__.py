"""
WebSocket module for the live dashboard stream.

Provides the broadcast hub, the message envelopes and the /ws endpoint.
"""

from .connection_manager import BroadcastHub, Subscriber
from .message_protocol import MessageKind, WebSocketMessage
from .server import websocket_router

__all__ = ["websocket_router", "BroadcastHub", "Subscriber", "MessageKind", "WebSocketMessage"]
