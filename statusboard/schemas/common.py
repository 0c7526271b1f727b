"""
Shared response schemas.
"""

from pydantic import BaseModel, Field

from statusboard.schemas.process import ProcessRecord
from statusboard.schemas.service import ServiceRecord


class ConnectionStatus(BaseModel):
    """State of the SSH link to the monitored host.

    ``host`` and ``port`` are None when no host is set.
    """

    configured: bool
    connected: bool
    state: str
    host: str | None = None
    port: int | None = None


class RemoteProcessesResponse(BaseModel):
    processes: list[ProcessRecord] = Field(default_factory=list)
    services: list[ServiceRecord] = Field(default_factory=list)
    total_processes: int = 0
    connection_active: bool = False
