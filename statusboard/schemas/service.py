"""
Tracked service schemas.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class ServiceStatus(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"


class ServiceAction(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"


class ServiceBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    status: ServiceStatus = ServiceStatus.OPERATIONAL
    response_time_ms: int = Field(default=0, ge=0)
    uptime_percent: float = Field(default=100.0, ge=0, le=100)


class ServiceCreate(ServiceBase):
    """Schema for creating a tracked service"""


class ServiceUpdate(BaseModel):
    """Partial update; only fields that were set are applied"""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    status: ServiceStatus | None = None
    response_time_ms: int | None = Field(default=None, ge=0)
    uptime_percent: float | None = Field(default=None, ge=0, le=100)


class ServiceRecord(ServiceBase):
    """Stored service, replaced wholesale on every update"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    last_checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ServiceActionResult(BaseModel):
    """Outcome of an administrative start/stop/restart"""

    success: bool
    service: str
    action: ServiceAction
    message: str
