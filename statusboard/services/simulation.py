"""
Simulated metrics used while the remote host is unreachable or not configured.
"""

import math
import random
import time
from typing import Callable

from statusboard.schemas.metrics import MetricsSnapshot, MetricsSource
from statusboard.schemas.process import ProcessRecord

SIMULATED_CORE_COUNT = 4
SIMULATED_MEMORY_TOTAL_GB = 2.0
SIMULATED_INTERFACE = "eth0"

# Time is bucketed to 10 s so the slow sine components move in steps
_TIME_BUCKET_MS = 10_000

_BASE_PROCESSES = (
    ProcessRecord(
        pid=1,
        name="systemd",
        command="/sbin/init",
        threads=1,
        user="root",
        memory="1.2%",
        cpu_usage_percent=0.0,
    ),
    ProcessRecord(
        pid=123,
        name="sshd",
        command="/usr/sbin/sshd -D",
        threads=1,
        user="root",
        memory="0.5%",
        cpu_usage_percent=0.1,
    ),
)


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class SimulationFallback:
    """
    Generates plausible snapshots for a small 4-core, 2 GB virtual server.

    CPU and memory follow slow sine waves with a little noise, so consecutive
    snapshots look continuous rather than random.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock
        self._started_at = clock()

    def snapshot(self) -> MetricsSnapshot:
        now = self._clock()
        base_time = (int(now * 1000) // _TIME_BUCKET_MS) * _TIME_BUCKET_MS
        rng = self._rng

        cpu_usage = _clamp(15 + math.sin(base_time / 100_000) * 10 + (rng.random() - 0.5) * 5, 5, 95)
        per_core = [
            round(_clamp(cpu_usage + (rng.random() - 0.5) * 20, 0, 100), 1)
            for _ in range(SIMULATED_CORE_COUNT)
        ]

        used = round(_clamp(1.2 + math.sin(base_time / 200_000) * 0.3, 0.8, 1.8), 2)
        cache = round(_clamp(0.5 + math.sin(base_time / 150_000) * 0.1, 0.2, 0.8), 2)
        # used + cache must fit in total
        cache = min(cache, round(SIMULATED_MEMORY_TOTAL_GB - used, 2))
        free = round(max(SIMULATED_MEMORY_TOTAL_GB - used - cache, 0.0), 2)

        return MetricsSnapshot(
            source=MetricsSource.SIMULATED,
            cpu_usage_percent=round(cpu_usage, 1),
            cpu_frequency_ghz=round(2.4 + rng.random() * 0.4, 2),
            core_count=SIMULATED_CORE_COUNT,
            per_core_usage=per_core,
            memory_total_gb=SIMULATED_MEMORY_TOTAL_GB,
            memory_used_gb=used,
            memory_cache_gb=cache,
            memory_free_gb=free,
            network_interface=SIMULATED_INTERFACE,
            network_download_bytes_per_sec=round((5 + rng.random() * 20) * 1024, 1),
            network_upload_bytes_per_sec=round((10 + rng.random() * 30) * 1024, 1),
            load_average=(
                round(0.5 + rng.random() * 0.3, 2),
                round(0.4 + rng.random() * 0.2, 2),
                round(0.3 + rng.random() * 0.1, 2),
            ),
            uptime_seconds=max(int(now - self._started_at), 0),
        )

    def processes(self) -> list[ProcessRecord]:
        return list(_BASE_PROCESSES)
