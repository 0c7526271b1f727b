"""
Unit tests for the metrics and process samplers
"""

import random

import pytest

from statusboard.schemas.metrics import MetricsSource
from statusboard.schemas.process import ProcessOrigin
from statusboard.services.metrics_sampler import (
    DEFAULT_CPU_FREQUENCY_GHZ,
    DEFAULT_CPU_USAGE,
    MetricsSampler,
    normalize_memory,
)
from statusboard.services.parsers.base_parser import Probe, ProbeChain
from statusboard.services.parsers.metrics_parser import (
    FREE_GB_COMMAND,
    FREE_MB_COMMAND,
    MEMINFO_COMMAND,
    NET_DEV_COMMAND,
    PROC_STAT_WINDOW_COMMAND,
    TOP_COMMAND,
    MemoryInfo,
)
from statusboard.services.parsers.process_parser import PS_AUX_COMMAND, PS_EO_COMMAND
from statusboard.services.process_sampler import ProcessSampler


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


def assert_memory_consistent(snapshot):
    total = snapshot.memory_total_gb
    parts = snapshot.memory_used_gb + snapshot.memory_cache_gb + snapshot.memory_free_gb
    assert snapshot.memory_used_gb + snapshot.memory_cache_gb <= total + 1e-9
    assert parts == pytest.approx(total, abs=0.011)


class TestProbeChain:
    """Test probe ordering and defaults"""

    @pytest.mark.asyncio
    async def test_first_successful_probe_wins(self, make_session):
        session = make_session({"second": "2", "first": "1"})
        chain = ProbeChain(
            "value",
            [Probe("first", "first", int), Probe("second", "second", int)],
            default=0,
        )
        assert await chain.run(session) == 1
        assert session.commands == ["first"]

    @pytest.mark.asyncio
    async def test_falls_through_to_default(self, make_session):
        session = make_session({})
        chain = ProbeChain("value", [Probe("missing", "missing", int)], default=list)
        result = await chain.run(session)
        assert result == []
        # callable defaults build a fresh value each time
        assert result is not chain.default


class TestMetricsSampler:
    """Test snapshot acquisition over scripted command output"""

    @pytest.mark.asyncio
    async def test_healthy_host(self, make_session, metrics_outputs):
        sampler = MetricsSampler(make_session(metrics_outputs), rng=random.Random(1))
        snapshot = await sampler.sample()

        assert snapshot.source == MetricsSource.REMOTE
        assert snapshot.cpu_usage_percent == 40.0
        assert snapshot.core_count == 2
        assert snapshot.per_core_usage == [50.0, 30.0]
        assert snapshot.cpu_frequency_ghz == 2.4
        assert (snapshot.memory_total_gb, snapshot.memory_used_gb) == (7.0, 2.0)
        assert (snapshot.memory_cache_gb, snapshot.memory_free_gb) == (4.0, 1.0)
        assert snapshot.network_interface == "eth0"
        assert snapshot.load_average == (0.52, 0.58, 0.59)
        assert snapshot.uptime_seconds == 12345

    @pytest.mark.asyncio
    async def test_every_command_failing_yields_defaults(self, make_session):
        sampler = MetricsSampler(make_session({}))
        snapshot = await sampler.sample()

        assert snapshot.cpu_usage_percent == DEFAULT_CPU_USAGE
        assert snapshot.cpu_frequency_ghz == DEFAULT_CPU_FREQUENCY_GHZ
        assert snapshot.core_count == 1
        assert len(snapshot.per_core_usage) == 1
        assert snapshot.memory_total_gb == 0.0
        assert snapshot.memory_free_gb == 0.0
        assert snapshot.network_interface == "eth0"
        assert snapshot.network_download_bytes_per_sec == 0.0
        assert snapshot.load_average == (0.0, 0.0, 0.0)
        assert snapshot.uptime_seconds == 0

    @pytest.mark.asyncio
    async def test_cpu_permission_denied_keeps_other_fields(self, make_session, metrics_outputs, deny):
        outputs = {
            **metrics_outputs,
            PROC_STAT_WINDOW_COMMAND: deny(PROC_STAT_WINDOW_COMMAND),
            TOP_COMMAND: deny(TOP_COMMAND),
        }
        sampler = MetricsSampler(make_session(outputs), rng=random.Random(7))
        snapshot = await sampler.sample()

        assert snapshot.cpu_usage_percent == DEFAULT_CPU_USAGE
        assert snapshot.core_count == 2
        assert len(snapshot.per_core_usage) == 2
        assert all(0 <= usage <= DEFAULT_CPU_USAGE + 10 for usage in snapshot.per_core_usage)
        assert snapshot.memory_total_gb == 7.0
        assert snapshot.memory_used_gb == 2.0
        assert snapshot.network_interface == "eth0"
        assert snapshot.load_average == (0.52, 0.58, 0.59)

    @pytest.mark.asyncio
    async def test_per_core_padded_to_core_count(self, make_session, metrics_outputs):
        outputs = {**metrics_outputs, "nproc": "8\n"}
        sampler = MetricsSampler(make_session(outputs), rng=random.Random(3))
        snapshot = await sampler.sample()

        assert snapshot.core_count == 8
        assert len(snapshot.per_core_usage) == 8
        assert snapshot.per_core_usage[:2] == [50.0, 30.0]
        assert all(0 <= usage <= 100 for usage in snapshot.per_core_usage)

    @pytest.mark.asyncio
    async def test_memory_falls_back_to_meminfo(self, make_session, metrics_outputs):
        outputs = {key: value for key, value in metrics_outputs.items() if key != FREE_GB_COMMAND}
        outputs[MEMINFO_COMMAND] = (
            "MemTotal:        2097152 kB\n"
            "MemFree:          524288 kB\n"
            "Buffers:          131072 kB\n"
            "Cached:           393216 kB\n"
        )
        snapshot = await MetricsSampler(make_session(outputs)).sample()

        assert snapshot.memory_total_gb == 2.0
        assert snapshot.memory_used_gb == 1.0
        assert_memory_consistent(snapshot)

    @pytest.mark.asyncio
    async def test_small_host_memory_read_in_megabytes(self, make_session, metrics_outputs):
        outputs = {
            **metrics_outputs,
            FREE_GB_COMMAND: (
                "               total        used        free      shared  buff/cache   available\n"
                "Mem:               1           0           0           0           0           0\n"
            ),
            FREE_MB_COMMAND: (
                "               total        used        free      shared  buff/cache   available\n"
                "Mem:            1967        1228         211          12         527         560\n"
            ),
        }
        snapshot = await MetricsSampler(make_session(outputs)).sample()

        assert snapshot.memory_total_gb == pytest.approx(1.92, abs=0.01)
        assert snapshot.memory_used_gb == pytest.approx(1.2, abs=0.01)
        assert snapshot.memory_cache_gb == pytest.approx(0.51, abs=0.01)
        assert_memory_consistent(snapshot)

    @pytest.mark.asyncio
    async def test_network_rates_between_samples(self, make_session, metrics_outputs):
        session = make_session(metrics_outputs)
        clock = FakeClock()
        sampler = MetricsSampler(session, clock=clock)

        first = await sampler.sample()
        assert first.network_download_bytes_per_sec == 0.0

        clock.now += 5
        session.responses[NET_DEV_COMMAND] = (
            "  eth0:   60000     110    0    0    0     0          0         0    "
            "25000      90    0    0    0     0       0          0\n"
        )
        second = await sampler.sample()
        assert second.network_download_bytes_per_sec == 2000.0
        assert second.network_upload_bytes_per_sec == 1000.0

    @pytest.mark.asyncio
    async def test_counter_reset_reports_zero(self, make_session, metrics_outputs):
        session = make_session(metrics_outputs)
        clock = FakeClock()
        sampler = MetricsSampler(session, clock=clock)
        await sampler.sample()

        clock.now += 5
        session.responses[NET_DEV_COMMAND] = (
            "  eth0:   10     1    0    0    0     0          0         0    "
            "10      1    0    0    0     0       0          0\n"
        )
        snapshot = await sampler.sample()
        assert snapshot.network_download_bytes_per_sec == 0.0
        assert snapshot.network_upload_bytes_per_sec == 0.0


class TestNormalizeMemory:
    """Test the memory consistency rules"""

    def test_cache_clamped_to_remaining(self):
        total, used, cache, free = normalize_memory(MemoryInfo(total_gb=4, used_gb=3, cache_gb=2))
        assert (total, used, cache, free) == (4, 3, 1, 0)

    def test_cache_clamped_to_available(self):
        info = MemoryInfo(total_gb=8, used_gb=2, cache_gb=5, available_gb=3)
        total, used, cache, free = normalize_memory(info)
        assert cache == 3
        assert used + cache + free == pytest.approx(total)

    def test_missing_memory(self):
        assert normalize_memory(None) == (0.0, 0.0, 0.0, 0.0)


class TestProcessSampler:
    """Test process listing and container enrichment"""

    @pytest.mark.asyncio
    async def test_processes_sorted_by_cpu_then_containers(self, make_session, process_outputs):
        sampler = ProcessSampler(make_session(process_outputs), limit=50)
        processes = await sampler.sample()

        host = [p for p in processes if p.origin == ProcessOrigin.HOST]
        containers = [p for p in processes if p.origin == ProcessOrigin.CONTAINER]
        assert [p.pid for p in host] == [812, 900, 1, 42]
        assert [p.name for p in containers] == ["redis", "api"]
        assert processes[-2:] == containers

    @pytest.mark.asyncio
    async def test_limit_applies_to_host_processes(self, make_session, process_outputs):
        sampler = ProcessSampler(make_session(process_outputs), limit=2, include_containers=False)
        processes = await sampler.sample()
        assert [p.pid for p in processes] == [812, 900]

    @pytest.mark.asyncio
    async def test_limit_covers_containers(self, make_session, process_outputs):
        processes = await ProcessSampler(make_session(process_outputs), limit=5).sample()

        assert len(processes) == 5
        assert [p.pid for p in processes[:4]] == [812, 900, 1, 42]
        assert processes[-1].name == "redis"

    @pytest.mark.asyncio
    async def test_falls_back_to_ps_aux(self, make_session, deny):
        outputs = {
            PS_EO_COMMAND: deny(PS_EO_COMMAND),
            PS_AUX_COMMAND: (
                "USER PID %CPU %MEM VSZ RSS TTY STAT START TIME COMMAND\n"
                "root 1 0.0 0.3 1 1 ? Ss Jan01 0:05 /sbin/init\n"
            ),
        }
        processes = await ProcessSampler(make_session(outputs)).sample()
        assert [p.name for p in processes] == ["init"]

    @pytest.mark.asyncio
    async def test_no_listing_returns_empty(self, make_session):
        assert await ProcessSampler(make_session({})).sample() == []
