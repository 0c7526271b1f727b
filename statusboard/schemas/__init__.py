"""
Pydantic schemas for metrics, processes, services and incidents.
"""

from .common import ConnectionStatus, RemoteProcessesResponse
from .incident import (
    IncidentCreate,
    IncidentRecord,
    IncidentSeverity,
    IncidentStatus,
    IncidentUpdate,
)
from .metrics import MetricsSnapshot, MetricsSource
from .process import ProcessOrigin, ProcessRecord
from .service import (
    ServiceAction,
    ServiceActionResult,
    ServiceCreate,
    ServiceRecord,
    ServiceStatus,
    ServiceUpdate,
)

__all__ = [
    "ConnectionStatus",
    "RemoteProcessesResponse",
    "IncidentCreate",
    "IncidentRecord",
    "IncidentSeverity",
    "IncidentStatus",
    "IncidentUpdate",
    "MetricsSnapshot",
    "MetricsSource",
    "ProcessOrigin",
    "ProcessRecord",
    "ServiceAction",
    "ServiceActionResult",
    "ServiceCreate",
    "ServiceRecord",
    "ServiceStatus",
    "ServiceUpdate",
]
