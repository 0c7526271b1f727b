"""
Incident schemas.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class IncidentStatus(str, Enum):
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"


class IncidentSeverity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class IncidentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str
    status: IncidentStatus = IncidentStatus.INVESTIGATING
    severity: IncidentSeverity = IncidentSeverity.MINOR
    affected_services: list[str] = Field(default_factory=list)


class IncidentUpdate(BaseModel):
    """Partial update; only fields that were set are applied"""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: IncidentStatus | None = None
    severity: IncidentSeverity | None = None
    affected_services: list[str] | None = None


class IncidentRecord(IncidentCreate):
    """Stored incident.

    ``resolved_at`` is stamped the first time the status becomes resolved
    and is never cleared afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resolved_at: datetime | None = None
