"""
WebSocket Message Protocol

Defines the envelopes pushed to dashboard clients and the few messages a
client may send back.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from statusboard.schemas.incident import IncidentRecord
from statusboard.schemas.metrics import MetricsSnapshot
from statusboard.schemas.process import ProcessRecord
from statusboard.schemas.service import ServiceRecord


class MessageKind(str, Enum):
    """WebSocket message kinds"""

    METRICS = "metrics"  # Snapshot with services and top processes
    INCIDENTS = "incidents"  # Full incident list
    HEARTBEAT = "heartbeat"  # Connection keepalive
    ERROR = "error"  # Error messages


class WebSocketMessage(BaseModel):
    """Base WebSocket message structure"""

    kind: MessageKind
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MetricsMessage(WebSocketMessage):
    kind: Literal[MessageKind.METRICS] = MessageKind.METRICS
    snapshot: MetricsSnapshot
    services: list[ServiceRecord] = Field(default_factory=list)
    processes: list[ProcessRecord] = Field(default_factory=list)


class IncidentsMessage(WebSocketMessage):
    kind: Literal[MessageKind.INCIDENTS] = MessageKind.INCIDENTS
    incidents: list[IncidentRecord] = Field(default_factory=list)


class HeartbeatMessage(WebSocketMessage):
    """Connection keepalive, echoed back to the client"""

    kind: Literal[MessageKind.HEARTBEAT] = MessageKind.HEARTBEAT
    client_id: str | None = None


class ErrorMessage(WebSocketMessage):
    kind: Literal[MessageKind.ERROR] = MessageKind.ERROR
    error_code: str
    message: str
    details: dict[str, Any] | None = None


ServerMessage = Annotated[
    Union[MetricsMessage, IncidentsMessage, HeartbeatMessage, ErrorMessage],
    Field(discriminator="kind"),
]

server_message_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)


def create_error_message(error_code: str, message: str, details: dict[str, Any] | None = None) -> ErrorMessage:
    """Helper to create error messages"""
    return ErrorMessage(error_code=error_code, message=message, details=details)
