"""
Unit tests for service discovery and the simulated fallback
"""

import random

import pytest

from statusboard.schemas.metrics import MetricsSource
from statusboard.schemas.service import ServiceCreate, ServiceStatus
from statusboard.services.parsers.service_parser import PORT_SCAN_COMMAND
from statusboard.services.service_discovery import ServiceDiscovery, is_denied
from statusboard.services.simulation import SimulationFallback


class TestServiceDiscovery:
    """Test discovery and reconciliation into the store"""

    @pytest.mark.asyncio
    async def test_discover_applies_deny_list(self, make_session, discovery_outputs):
        discovery = ServiceDiscovery(make_session(discovery_outputs), rng=random.Random(5))
        services = {s.name: s for s in await discovery.discover()}

        assert set(services) == {"nginx", "postgresql@14-main", "redis", "api", "SSH", "HTTP", "Redis"}
        assert services["nginx"].status == ServiceStatus.OPERATIONAL
        assert services["nginx"].uptime_percent == 99.9
        assert services["postgresql@14-main"].status == ServiceStatus.OUTAGE
        assert services["postgresql@14-main"].uptime_percent == 0.0
        assert services["api"].status == ServiceStatus.DEGRADED
        assert 5 <= services["SSH"].response_time_ms <= 54
        assert 99.8 <= services["SSH"].uptime_percent <= 100.0

    @pytest.mark.asyncio
    async def test_sources_can_be_disabled(self, make_session, discovery_outputs):
        discovery = ServiceDiscovery(
            make_session(discovery_outputs), include_containers=False, include_ports=False
        )
        names = [s.name for s in await discovery.discover()]

        assert names == ["nginx", "postgresql@14-main"]

    @pytest.mark.asyncio
    async def test_failed_port_scan_does_not_block_discovery(self, make_session, discovery_outputs, deny):
        outputs = {**discovery_outputs, PORT_SCAN_COMMAND: deny(PORT_SCAN_COMMAND)}
        names = [s.name for s in await ServiceDiscovery(make_session(outputs)).discover()]

        assert "nginx" in names
        assert "SSH" not in names

    @pytest.mark.asyncio
    async def test_sync_is_idempotent(self, make_session, discovery_outputs, store):
        discovery = ServiceDiscovery(make_session(discovery_outputs))

        created = await discovery.sync(store)
        assert len(created) == 7

        again = await discovery.sync(store)
        assert again == []
        assert len(await store.list_services()) == 7

    @pytest.mark.asyncio
    async def test_sync_keeps_existing_records(self, make_session, discovery_outputs, store):
        manual = await store.create_service(
            ServiceCreate(name="nginx", status=ServiceStatus.DEGRADED, response_time_ms=250)
        )
        await ServiceDiscovery(make_session(discovery_outputs)).sync(store)

        stored = await store.get_service_by_name("nginx")
        assert stored == manual

    def test_deny_list(self):
        assert is_denied("systemd-journald")
        assert is_denied("getty@tty1")
        assert not is_denied("nginx")


class TestSimulationFallback:
    """Test the simulated snapshot generator"""

    def test_snapshot_ranges(self):
        simulation = SimulationFallback(rng=random.Random(11))
        for _ in range(50):
            snapshot = simulation.snapshot()
            assert snapshot.source == MetricsSource.SIMULATED
            assert 5 <= snapshot.cpu_usage_percent <= 95
            assert snapshot.core_count == 4
            assert len(snapshot.per_core_usage) == 4
            assert all(0 <= usage <= 100 for usage in snapshot.per_core_usage)
            assert snapshot.memory_total_gb == 2.0
            assert snapshot.memory_used_gb + snapshot.memory_cache_gb <= snapshot.memory_total_gb + 1e-9
            assert snapshot.memory_free_gb >= 0

    def test_uptime_counts_from_creation(self):
        now = [1_000_000.0]
        simulation = SimulationFallback(rng=random.Random(2), clock=lambda: now[0])
        now[0] += 90.5

        assert simulation.snapshot().uptime_seconds == 90

    def test_processes(self):
        processes = SimulationFallback().processes()
        assert [p.name for p in processes] == ["systemd", "sshd"]
