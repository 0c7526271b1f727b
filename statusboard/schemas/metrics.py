"""
System metrics Pydantic schemas.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MetricsSource(str, Enum):
    """Where a snapshot came from"""

    REMOTE = "remote"
    SIMULATED = "simulated"


class MetricsSnapshot(BaseModel):
    """One immutable, fully populated measurement of the remote host"""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: MetricsSource = MetricsSource.REMOTE

    # CPU metrics
    cpu_usage_percent: float = Field(ge=0, le=100, description="Aggregate CPU usage percentage")
    cpu_frequency_ghz: float = Field(ge=0, description="Current CPU frequency in GHz")
    core_count: int = Field(ge=1, description="Detected logical core count")
    per_core_usage: list[float] = Field(description="Usage per logical core, in core order")

    # Memory metrics, all in GB
    memory_total_gb: float = Field(ge=0)
    memory_used_gb: float = Field(ge=0)
    memory_cache_gb: float = Field(ge=0)
    memory_free_gb: float = Field(ge=0)

    # Network metrics
    network_interface: str = "eth0"
    network_download_bytes_per_sec: float = Field(default=0.0, ge=0)
    network_upload_bytes_per_sec: float = Field(default=0.0, ge=0)

    load_average: tuple[float, float, float] = (0.0, 0.0, 0.0)
    uptime_seconds: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_core_usage(self) -> "MetricsSnapshot":
        if len(self.per_core_usage) != self.core_count:
            raise ValueError(
                f"per_core_usage has {len(self.per_core_usage)} entries for {self.core_count} cores"
            )
        if any(usage < 0 or usage > 100 for usage in self.per_core_usage):
            raise ValueError("per_core_usage entries must be within 0-100")
        return self
