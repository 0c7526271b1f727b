"""
WebSocket Connection Manager

Tracks dashboard subscribers and fans live updates out to all of them.
Delivery is best effort: a subscriber whose send fails or times out is
closed and removed, and never slows down the others.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from .message_protocol import MessageKind, WebSocketMessage

logger = logging.getLogger(__name__)

InitialMessageFactory = Callable[[], Awaitable[Optional[WebSocketMessage]]]


class Subscriber:
    """Represents a single WebSocket connection with metadata"""

    def __init__(self, websocket: WebSocket, client_id: str):
        self.websocket = websocket
        self.client_id = client_id
        self.is_open = True
        self.connected_at = datetime.now(timezone.utc)

    async def send_text(self, text: str, timeout: float) -> None:
        """Send one frame, bounded by ``timeout`` seconds"""
        await asyncio.wait_for(self.websocket.send_text(text), timeout=timeout)

    async def close(self) -> None:
        """Mark closed and close the socket if it is still connected"""
        if not self.is_open:
            return
        self.is_open = False
        if self.websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.close()
        except Exception as e:  # noqa: BLE001 - peer may already be gone
            logger.debug(f"Error closing WebSocket {self.client_id}: {e}")


class BroadcastHub:
    """Manages all WebSocket subscribers and message broadcasting"""

    def __init__(
        self,
        send_timeout: float = 1.0,
        max_connections: int = 50,
        initial_message_factory: InitialMessageFactory | None = None,
    ) -> None:
        """
        Initialize the hub.

        Args:
            send_timeout: Seconds allowed for one send to one subscriber
            max_connections: Subscriber limit checked by the endpoint
            initial_message_factory: Builds the message sent right after
                subscribing; defaults to the last published metrics message
        """
        self.send_timeout = send_timeout
        self.max_connections = max_connections
        self.initial_message_factory = initial_message_factory
        self.start_time = datetime.now(timezone.utc)
        self._subscribers: dict[str, Subscriber] = {}
        self._last_metrics_payload: str | None = None
        self._messages_published = 0

    def get_connection_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_full(self) -> bool:
        return len(self._subscribers) >= self.max_connections

    async def subscribe(self, websocket: WebSocket, client_id: str | None = None) -> Subscriber:
        """
        Send the latest metrics to an accepted WebSocket, then register it.

        Broadcasts only reach the subscriber once it is registered, so the
        initial message is always the first one it receives.

        Returns:
            Subscriber: The subscriber, closed and unregistered if the
            initial send failed
        """
        subscriber = Subscriber(websocket, client_id or f"client_{uuid4().hex[:8]}")

        payload = self._last_metrics_payload
        if self.initial_message_factory is not None:
            message = await self.initial_message_factory()
            payload = message.model_dump_json() if message is not None else None

        if payload is not None and not await self._deliver(subscriber, payload):
            return subscriber

        self._subscribers[subscriber.client_id] = subscriber
        logger.info(f"WebSocket client connected: {subscriber.client_id}")
        return subscriber

    async def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber; safe to call more than once"""
        if self._subscribers.pop(subscriber.client_id, None) is not None:
            logger.info(f"WebSocket client disconnected: {subscriber.client_id}")
        await subscriber.close()

    async def publish(self, message: WebSocketMessage) -> int:
        """
        Send ``message`` to every open subscriber concurrently.

        The message is serialized once. Subscribers whose send fails or
        exceeds the send timeout are closed and removed.

        Returns:
            int: Number of subscribers the message was delivered to
        """
        payload = message.model_dump_json()
        if message.kind == MessageKind.METRICS:
            self._last_metrics_payload = payload
        self._messages_published += 1

        targets = [s for s in self._subscribers.values() if s.is_open]
        if not targets:
            return 0

        logger.debug(f"Broadcasting {message.kind.value} to {len(targets)} connections")
        results = await asyncio.gather(*(self._deliver(s, payload) for s in targets))
        return sum(results)

    async def close_all(self) -> None:
        """Close every subscriber, used at shutdown"""
        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for subscriber in subscribers:
            await subscriber.close()
        if subscribers:
            logger.info(f"Closed {len(subscribers)} WebSocket connections")

    def get_connection_stats(self) -> dict[str, Any]:
        """Get statistics about active connections"""
        return {
            "total_connections": len(self._subscribers),
            "max_connections": self.max_connections,
            "messages_published": self._messages_published,
            "uptime_seconds": (datetime.now(timezone.utc) - self.start_time).total_seconds(),
        }

    async def _deliver(self, subscriber: Subscriber, payload: str) -> bool:
        if not subscriber.is_open:
            return False
        try:
            await subscriber.send_text(payload, self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Send to {subscriber.client_id} timed out, dropping subscriber")
        except Exception as e:  # noqa: BLE001 - any send failure drops the subscriber
            logger.warning(f"Send to {subscriber.client_id} failed, dropping subscriber: {e}")
        await self.unsubscribe(subscriber)
        return False
