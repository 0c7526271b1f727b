"""
Unit tests for RemoteIntegration: connection lifecycle, reconnect policy
and service management
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from statusboard.core.config import RemoteHostSettings
from statusboard.core.exceptions import SSHAuthenticationError
from statusboard.schemas.service import ServiceAction, ServiceCreate, ServiceStatus
from statusboard.services.remote_integration import RemoteIntegration
from statusboard.utils.ssh_client import ConnectionState


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def integration(remote_settings, store, healthy_session, sleep):
    return RemoteIntegration(remote_settings, store, session=healthy_session, sleep=sleep)


class TestConnectionLifecycle:
    """Test connect, status and unconfigured behaviour"""

    def test_unconfigured_has_no_session(self, unconfigured_settings, store):
        integration = RemoteIntegration(unconfigured_settings, store)

        assert not integration.is_configured
        assert integration.metrics_sampler is None
        status = integration.get_connection_status()
        assert status.configured is False
        assert status.connected is False
        assert status.state == ConnectionState.DISCONNECTED.value
        assert status.host is None
        assert status.port is None

    def test_host_without_credentials_reports_target(self, store):
        settings = RemoteHostSettings(VPS_HOST="vps.example.com", VPS_USERNAME=None, VPS_PASSWORD=None)
        status = RemoteIntegration(settings, store).get_connection_status()

        assert status.configured is False
        assert (status.host, status.port) == ("vps.example.com", 22)

    @pytest.mark.asyncio
    async def test_unconfigured_samples_nothing(self, unconfigured_settings, store):
        integration = RemoteIntegration(unconfigured_settings, store)

        assert await integration.connect() is False
        assert await integration.sample_metrics() is None
        assert await integration.sample_processes() is None
        assert await integration.discover_and_sync_services() == []

    @pytest.mark.asyncio
    async def test_connect_failure_is_reported_not_raised(self, integration, healthy_session):
        healthy_session.state = ConnectionState.DISCONNECTED
        healthy_session.connect_error = SSHAuthenticationError(hostname="vps.example.com")

        assert await integration.connect() is False
        assert integration.get_connection_status().state == ConnectionState.FAILED.value

    def test_connection_status(self, integration):
        status = integration.get_connection_status()
        assert status.configured is True
        assert status.connected is True
        assert status.host == "vps.example.com"
        assert status.port == 22

    @pytest.mark.asyncio
    async def test_ensure_connected_runs_discovery(self, integration, healthy_session, store):
        healthy_session.state = ConnectionState.DISCONNECTED

        assert await integration.ensure_connected() is True
        assert healthy_session.connect_calls == 1
        assert len(await store.list_services()) == 7

    @pytest.mark.asyncio
    async def test_ensure_connected_when_active_does_nothing(self, integration, healthy_session):
        assert await integration.ensure_connected() is True
        assert healthy_session.connect_calls == 0
        assert healthy_session.commands == []


class TestReconnectPolicy:
    """Test loss detection during a sampling pass"""

    @pytest.mark.asyncio
    async def test_sample_while_disconnected_runs_no_commands(self, integration, healthy_session):
        healthy_session.state = ConnectionState.DISCONNECTED

        assert await integration.sample_metrics() is None
        assert healthy_session.commands == []

    @pytest.mark.asyncio
    async def test_loss_mid_pass_discards_sample_and_reconnects(
        self, integration, healthy_session, sleep
    ):
        healthy_session.lose_connection_on = "nproc"

        assert await integration.sample_metrics() is None
        assert healthy_session.close_calls == 1
        sleep.assert_awaited_once_with(2.0)
        assert healthy_session.connect_calls == 1
        assert healthy_session.is_active()

    @pytest.mark.asyncio
    async def test_healthy_pass_returns_snapshot(self, integration):
        snapshot = await integration.sample_metrics()
        assert snapshot is not None
        assert snapshot.cpu_usage_percent == 40.0

    @pytest.mark.asyncio
    async def test_concurrent_reconnect_is_rejected(self, remote_settings, store, healthy_session):
        release = asyncio.Event()

        async def blocking_sleep(_delay: float) -> None:
            await release.wait()

        integration = RemoteIntegration(
            remote_settings, store, session=healthy_session, sleep=blocking_sleep
        )
        first = asyncio.create_task(integration.reconnect())
        await asyncio.sleep(0)

        assert await integration.reconnect() is False
        assert await integration.ensure_connected() is False

        release.set()
        assert await first is True
        assert healthy_session.connect_calls == 1


class TestManageService:
    """Test administrative start/stop/restart"""

    @pytest.mark.asyncio
    async def test_restart_updates_tracked_service(self, integration, healthy_session, store):
        healthy_session.responses["sudo -n systemctl"] = ""
        service = await store.create_service(ServiceCreate(name="nginx", status=ServiceStatus.OUTAGE))

        result = await integration.manage_service("nginx", ServiceAction.RESTART)

        assert result.success is True
        assert result.message == "Service nginx restarted"
        assert "sudo -n systemctl restart nginx" in healthy_session.commands
        assert (await store.get_service(service.id)).status == ServiceStatus.OPERATIONAL

    @pytest.mark.asyncio
    async def test_stop_matches_name_case_insensitively(self, integration, healthy_session, store):
        healthy_session.responses["sudo -n systemctl"] = ""
        service = await store.create_service(ServiceCreate(name="Nginx"))

        result = await integration.manage_service("nginx", ServiceAction.STOP)

        assert result.success is True
        assert (await store.get_service(service.id)).status == ServiceStatus.OUTAGE

    @pytest.mark.asyncio
    async def test_failed_command_reports_failure(self, integration, store):
        service = await store.create_service(ServiceCreate(name="nginx"))

        result = await integration.manage_service("nginx", ServiceAction.STOP)

        assert result.success is False
        assert "Failed to stop nginx" in result.message
        assert (await store.get_service(service.id)).status == ServiceStatus.OPERATIONAL

    @pytest.mark.asyncio
    async def test_invalid_name_is_rejected_without_running(self, integration, healthy_session):
        result = await integration.manage_service("nginx; reboot", ServiceAction.START)

        assert result.success is False
        assert healthy_session.commands == []

    @pytest.mark.asyncio
    async def test_disconnected_host(self, integration, healthy_session):
        healthy_session.state = ConnectionState.DISCONNECTED

        result = await integration.manage_service("nginx", ServiceAction.START)

        assert result.success is False
        assert result.message == "Remote host is not connected"
