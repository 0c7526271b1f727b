"""
Service layer owning the SSH session to the monitored host.

RemoteIntegration is the only place that connects, reconnects or closes the
session. Samplers report failures upward and never reconnect themselves.
"""

import asyncio
import logging
import re
import shlex
from typing import Awaitable, Callable

from statusboard.core.config import PollingSettings, RemoteHostSettings
from statusboard.core.exceptions import StatusBoardException
from statusboard.core.store import MemoryMetricsStore
from statusboard.schemas.common import ConnectionStatus
from statusboard.schemas.metrics import MetricsSnapshot
from statusboard.schemas.process import ProcessRecord
from statusboard.schemas.service import (
    ServiceAction,
    ServiceActionResult,
    ServiceRecord,
    ServiceStatus,
    ServiceUpdate,
)
from statusboard.services.metrics_sampler import MetricsSampler
from statusboard.services.process_sampler import ProcessSampler
from statusboard.services.service_discovery import ServiceDiscovery
from statusboard.utils.ssh_client import ConnectionState, RemoteSession, SSHConnectionInfo

logger = logging.getLogger(__name__)

# systemd unit names, optionally with an instance after "@"
_SERVICE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9@._:-]{0,254}$")

_ACTION_RESULT_STATUS = {
    ServiceAction.START: ServiceStatus.OPERATIONAL,
    ServiceAction.RESTART: ServiceStatus.OPERATIONAL,
    ServiceAction.STOP: ServiceStatus.OUTAGE,
}
_ACTION_PAST_TENSE = {
    ServiceAction.START: "started",
    ServiceAction.RESTART: "restarted",
    ServiceAction.STOP: "stopped",
}


def build_session(settings: RemoteHostSettings) -> RemoteSession | None:
    """Create the (unconnected) session, or None when SSH is not configured"""
    if not settings.is_configured:
        return None
    return RemoteSession(
        SSHConnectionInfo(
            host=settings.vps_host,
            port=settings.vps_port,
            username=settings.vps_username,
            password=settings.vps_password,
            connect_timeout=settings.ssh_connect_timeout,
            command_timeout=settings.ssh_command_timeout,
            keepalive_interval=settings.ssh_keepalive_interval,
        )
    )


class RemoteIntegration:
    """Connection lifecycle, reconnect policy and remote operations"""

    def __init__(
        self,
        settings: RemoteHostSettings,
        store: MemoryMetricsStore,
        polling: PollingSettings | None = None,
        session: RemoteSession | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the integration.

        Args:
            settings: Remote host settings
            store: Store updated by discovery and service actions
            polling: Process limit and discovery switches
            session: Session to use instead of one built from ``settings``
            sleep: Delay function used between reconnect attempts
        """
        polling = polling or PollingSettings()
        self.settings = settings
        self.store = store
        self.session = session if session is not None else build_session(settings)
        self._sleep = sleep
        self._reconnecting = False

        self.metrics_sampler: MetricsSampler | None = None
        self.process_sampler: ProcessSampler | None = None
        self.service_discovery: ServiceDiscovery | None = None
        if self.session is not None:
            self.metrics_sampler = MetricsSampler(self.session)
            self.process_sampler = ProcessSampler(
                self.session,
                limit=polling.process_limit,
                include_containers=polling.container_monitoring_enabled,
            )
            self.service_discovery = ServiceDiscovery(
                self.session,
                include_containers=polling.container_monitoring_enabled,
                include_ports=polling.port_discovery_enabled,
            )
        else:
            logger.info("Remote host credentials not configured, using simulated metrics")

    @property
    def is_configured(self) -> bool:
        return self.session is not None

    def is_connection_active(self) -> bool:
        return self.session is not None and self.session.is_active()

    async def connect(self) -> bool:
        """Open the session; failures are logged and reported as False"""
        if self.session is None:
            return False
        try:
            await self.session.connect()
        except StatusBoardException as e:
            logger.warning(
                f"Failed to connect to remote host: {e.message}",
                extra={"error_code": e.error_code, "hostname": e.hostname},
            )
            return False
        return True

    async def disconnect(self) -> None:
        if self.session is not None:
            await self.session.close()

    async def reconnect(self) -> bool:
        """
        Close, wait the reconnect delay, then connect once.

        Concurrent calls while a reconnect is in progress return False
        immediately.
        """
        if self.session is None or self._reconnecting:
            return False

        self._reconnecting = True
        try:
            logger.info("Reconnecting to remote host")
            await self.disconnect()
            await self._sleep(self.settings.ssh_reconnect_delay)
            connected = await self.connect()
        finally:
            self._reconnecting = False

        if connected:
            logger.info("Reconnected to remote host")
        return connected

    async def ensure_connected(self) -> bool:
        """
        Connect when configured but not connected; used by the periodic
        re-check. A fresh connection is followed by a discovery sync.
        """
        if self.session is None or self._reconnecting:
            return False
        if self.session.is_active():
            return True
        if self.session.state == ConnectionState.CONNECTING:
            return False
        if not await self.connect():
            return False
        await self.discover_and_sync_services()
        return True

    def get_connection_status(self) -> ConnectionStatus:
        if self.session is None:
            return ConnectionStatus(
                configured=False,
                connected=False,
                state=ConnectionState.DISCONNECTED.value,
                host=self.settings.vps_host,
                port=self.settings.vps_port if self.settings.vps_host else None,
            )
        info = self.session.connection_info
        return ConnectionStatus(
            configured=True,
            connected=self.session.is_active(),
            state=self.session.state.value,
            host=info.host,
            port=info.port,
        )

    async def sample_metrics(self) -> MetricsSnapshot | None:
        """
        Sample the remote host.

        Returns None when the session is not active, or when it was lost
        during the pass; in the latter case the sample is discarded and one
        reconnect attempt is made.
        """
        if not self.is_connection_active():
            return None
        snapshot = await self.metrics_sampler.sample()
        if await self._lost_during_pass("metrics"):
            return None
        return snapshot

    async def sample_processes(self) -> list[ProcessRecord] | None:
        """Process listing; None under the same conditions as sample_metrics"""
        if not self.is_connection_active():
            return None
        processes = await self.process_sampler.sample()
        if await self._lost_during_pass("processes"):
            return None
        return processes

    async def discover_and_sync_services(self) -> list[ServiceRecord]:
        """Reconcile discovered services into the store; returns created records"""
        if not self.is_connection_active():
            return []
        created = await self.service_discovery.sync(self.store)
        await self._lost_during_pass("discovery")
        return created

    async def manage_service(self, name: str, action: ServiceAction) -> ServiceActionResult:
        """
        Start, stop or restart a systemd unit on the remote host.

        On success the matching tracked service (exact name first, then
        case-insensitive) gets the status implied by the action.

        Returns:
            ServiceActionResult: Outcome with a human readable message
        """
        action = ServiceAction(action)

        def result(success: bool, message: str) -> ServiceActionResult:
            return ServiceActionResult(success=success, service=name, action=action, message=message)

        if not _SERVICE_NAME.match(name):
            return result(False, f"Invalid service name: {name!r}")
        if not self.is_connection_active():
            return result(False, "Remote host is not connected")

        command = f"sudo -n systemctl {action.value} {shlex.quote(name)}"
        try:
            await self.session.execute(command, timeout=30)
        except StatusBoardException as e:
            logger.warning(
                f"Service {action.value} failed for {name}: {e.message}",
                extra={"error_code": e.error_code},
            )
            return result(False, f"Failed to {action.value} {name}: {e.message}")

        service = await self._find_service(name)
        if service is not None:
            await self.store.update_service(
                service.id, ServiceUpdate(status=_ACTION_RESULT_STATUS[action])
            )

        logger.info(f"Service {name} {_ACTION_PAST_TENSE[action]}")
        return result(True, f"Service {name} {_ACTION_PAST_TENSE[action]}")

    async def _find_service(self, name: str) -> ServiceRecord | None:
        service = await self.store.get_service_by_name(name)
        if service is not None:
            return service
        lowered = name.lower()
        for candidate in await self.store.list_services():
            if candidate.name.lower() == lowered:
                return candidate
        return None

    async def _lost_during_pass(self, what: str) -> bool:
        if self.session.is_active():
            return False
        logger.warning(f"SSH session lost during {what} sampling")
        await self.reconnect()
        return True
