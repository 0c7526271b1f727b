"""
Service layer for remote system metrics acquisition.
"""

import logging
import random
import time
from typing import Callable

from statusboard.schemas.metrics import MetricsSnapshot, MetricsSource
from statusboard.services.parsers.base_parser import CommandRunner, Probe, ProbeChain
from statusboard.services.parsers.metrics_parser import (
    CPUINFO_MHZ_COMMAND,
    DEFAULT_ROUTE_COMMAND,
    FREE_GB_COMMAND,
    FREE_MB_COMMAND,
    LOADAVG_COMMAND,
    MEMINFO_COMMAND,
    NET_DEV_COMMAND,
    NPROC_COMMAND,
    PROC_NET_ROUTE_COMMAND,
    PROC_STAT_WINDOW_COMMAND,
    PROC_UPTIME_COMMAND,
    PROCESSOR_COUNT_COMMAND,
    SCALING_FREQ_COMMAND,
    TOP_COMMAND,
    UPTIME_COMMAND,
    CpuUsage,
    MemoryInfo,
    parse_core_count,
    parse_cpuinfo_mhz,
    parse_free_gb,
    parse_free_mb,
    parse_ip_route_default,
    parse_loadavg,
    parse_meminfo,
    parse_net_dev,
    parse_proc_net_route,
    parse_proc_stat_window,
    parse_proc_uptime,
    parse_scaling_freq,
    parse_top_cpu,
    parse_uptime_load,
)

logger = logging.getLogger(__name__)

DEFAULT_CPU_USAGE = 10.0
DEFAULT_CPU_FREQUENCY_GHZ = 2.4
DEFAULT_INTERFACE = "eth0"
PER_CORE_JITTER = 10.0


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def normalize_memory(info: MemoryInfo | None) -> tuple[float, float, float, float]:
    """
    Return (total, used, cache, free) in GB with total >= used + cache.

    Cache is clamped to what is left after used memory and, when reported,
    to the available figure. Free is always the remainder.
    """
    if info is None:
        return 0.0, 0.0, 0.0, 0.0

    total = round(max(info.total_gb, 0.0), 2)
    used = min(round(max(info.used_gb, 0.0), 2), total)
    cache = min(round(max(info.cache_gb, 0.0), 2), round(total - used, 2))
    if info.available_gb is not None:
        cache = min(cache, round(max(info.available_gb, 0.0), 2))
    free = round(max(total - used - cache, 0.0), 2)
    return total, used, cache, free


class MetricsSampler:
    """
    Produces one fully populated MetricsSnapshot per call.

    Every field has its own probe chain (primary, secondary, default) so a
    failing command only degrades the field it feeds. Probes run one after
    another over the shared session.
    """

    def __init__(
        self,
        session: CommandRunner,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self._rng = rng or random.Random()
        self._clock = clock
        # interface, rx bytes, tx bytes, clock reading
        self._previous_counters: tuple[str, int, int, float] | None = None

        self.cpu_chain: ProbeChain[CpuUsage] = ProbeChain(
            "cpu_usage",
            [
                Probe("proc_stat", PROC_STAT_WINDOW_COMMAND, parse_proc_stat_window, timeout=5),
                Probe("top", TOP_COMMAND, parse_top_cpu),
            ],
            default=CpuUsage(aggregate=DEFAULT_CPU_USAGE),
        )
        self.frequency_chain: ProbeChain[float] = ProbeChain(
            "cpu_frequency",
            [
                Probe("cpuinfo", CPUINFO_MHZ_COMMAND, parse_cpuinfo_mhz),
                Probe("scaling_cur_freq", SCALING_FREQ_COMMAND, parse_scaling_freq),
            ],
            default=DEFAULT_CPU_FREQUENCY_GHZ,
        )
        self.core_count_chain: ProbeChain[int | None] = ProbeChain(
            "core_count",
            [
                Probe("nproc", NPROC_COMMAND, parse_core_count),
                Probe("cpuinfo_processors", PROCESSOR_COUNT_COMMAND, parse_core_count),
            ],
            default=None,
        )
        self.memory_chain: ProbeChain[MemoryInfo | None] = ProbeChain(
            "memory",
            [
                Probe("free_gb", FREE_GB_COMMAND, parse_free_gb),
                Probe("free_mb", FREE_MB_COMMAND, parse_free_mb),
                Probe("meminfo", MEMINFO_COMMAND, parse_meminfo),
            ],
            default=None,
        )
        self.interface_chain: ProbeChain[str] = ProbeChain(
            "network_interface",
            [
                Probe("ip_route", DEFAULT_ROUTE_COMMAND, parse_ip_route_default),
                Probe("proc_net_route", PROC_NET_ROUTE_COMMAND, parse_proc_net_route),
            ],
            default=DEFAULT_INTERFACE,
        )
        self.counters_chain: ProbeChain[dict[str, tuple[int, int]] | None] = ProbeChain(
            "network_counters",
            [Probe("net_dev", NET_DEV_COMMAND, parse_net_dev)],
            default=None,
        )
        self.load_chain: ProbeChain[tuple[float, float, float]] = ProbeChain(
            "load_average",
            [
                Probe("loadavg", LOADAVG_COMMAND, parse_loadavg),
                Probe("uptime", UPTIME_COMMAND, parse_uptime_load),
            ],
            default=(0.0, 0.0, 0.0),
        )
        self.uptime_chain: ProbeChain[int] = ProbeChain(
            "uptime",
            [Probe("proc_uptime", PROC_UPTIME_COMMAND, parse_proc_uptime)],
            default=0,
        )

    async def sample(self) -> MetricsSnapshot:
        """Sample the remote host; never raises"""
        try:
            return await self._sample()
        except Exception as e:  # noqa: BLE001 - sampling failures must not reach the scheduler
            logger.error(f"Unexpected error while sampling metrics: {e}", exc_info=True)
            return self.default_snapshot()

    async def _sample(self) -> MetricsSnapshot:
        cpu = await self.cpu_chain.run(self.session)
        frequency = await self.frequency_chain.run(self.session)
        core_count = await self.core_count_chain.run(self.session)
        core_count = core_count or len(cpu.per_core) or 1
        memory = await self.memory_chain.run(self.session)
        interface = await self.interface_chain.run(self.session)
        download, upload = await self._network_rates(interface)
        load_average = await self.load_chain.run(self.session)
        uptime = await self.uptime_chain.run(self.session)

        total, used, cache, free = normalize_memory(memory)
        return MetricsSnapshot(
            source=MetricsSource.REMOTE,
            cpu_usage_percent=clamp(cpu.aggregate, 0.0, 100.0),
            cpu_frequency_ghz=frequency,
            core_count=core_count,
            per_core_usage=self.per_core_usage(cpu, core_count),
            memory_total_gb=total,
            memory_used_gb=used,
            memory_cache_gb=cache,
            memory_free_gb=free,
            network_interface=interface,
            network_download_bytes_per_sec=download,
            network_upload_bytes_per_sec=upload,
            load_average=load_average,
            uptime_seconds=uptime,
        )

    def per_core_usage(self, cpu: CpuUsage, core_count: int) -> list[float]:
        """
        Per-core figures sized to exactly ``core_count`` entries.

        Measured values are used where present; missing cores get the
        aggregate jittered by up to PER_CORE_JITTER points.
        """
        usage = [clamp(value, 0.0, 100.0) for value in cpu.per_core[:core_count]]
        while len(usage) < core_count:
            jitter = self._rng.uniform(-PER_CORE_JITTER, PER_CORE_JITTER)
            usage.append(round(clamp(cpu.aggregate + jitter, 0.0, 100.0), 1))
        return usage

    async def _network_rates(self, interface: str) -> tuple[float, float]:
        """Bytes per second since the previous sample of the same interface"""
        counters = await self.counters_chain.run(self.session)
        now = self._clock()

        if counters is None or interface not in counters:
            if counters is not None:
                logger.warning(f"Interface {interface} not present in /proc/net/dev")
            self._previous_counters = None
            return 0.0, 0.0

        rx, tx = counters[interface]
        previous, self._previous_counters = self._previous_counters, (interface, rx, tx, now)

        if previous is None or previous[0] != interface:
            return 0.0, 0.0
        elapsed = now - previous[3]
        if elapsed <= 0 or rx < previous[1] or tx < previous[2]:
            # counter reset or clock anomaly
            return 0.0, 0.0
        return round((rx - previous[1]) / elapsed, 1), round((tx - previous[2]) / elapsed, 1)

    def default_snapshot(self) -> MetricsSnapshot:
        """Snapshot made only of field defaults"""
        cpu = CpuUsage(aggregate=DEFAULT_CPU_USAGE)
        return MetricsSnapshot(
            source=MetricsSource.REMOTE,
            cpu_usage_percent=DEFAULT_CPU_USAGE,
            cpu_frequency_ghz=DEFAULT_CPU_FREQUENCY_GHZ,
            core_count=1,
            per_core_usage=self.per_core_usage(cpu, 1),
            memory_total_gb=0.0,
            memory_used_gb=0.0,
            memory_cache_gb=0.0,
            memory_free_gb=0.0,
            network_interface=DEFAULT_INTERFACE,
        )
