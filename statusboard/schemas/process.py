"""
Process listing schemas.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProcessOrigin(str, Enum):
    HOST = "host"
    CONTAINER = "container"


class ProcessRecord(BaseModel):
    """A running process or container workload on the remote host.

    ``pid`` is only unique per host; container entries carry a pid derived
    from the container id and may collide with host pids.
    """

    model_config = ConfigDict(frozen=True)

    pid: int = Field(ge=0)
    name: str
    command: str
    threads: int = Field(default=1, ge=1)
    user: str
    memory: str = Field(default="0.0%", description="Memory usage as a percentage string")
    cpu_usage_percent: float = Field(default=0.0, ge=0)
    origin: ProcessOrigin = ProcessOrigin.HOST

    @property
    def memory_percent(self) -> float:
        """Numeric form of ``memory``, 0.0 when unparseable"""
        digits = "".join(ch for ch in self.memory if ch.isdigit() or ch == ".")
        try:
            return float(digits)
        except ValueError:
            return 0.0
