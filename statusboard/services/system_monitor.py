"""
Service layer for the monitoring jobs: acquisition, service refresh and the
live update messages.
"""

import logging
import random

from statusboard.core.config import PollingSettings
from statusboard.core.store import MemoryMetricsStore
from statusboard.schemas.metrics import MetricsSnapshot
from statusboard.services.remote_integration import RemoteIntegration
from statusboard.services.simulation import SimulationFallback
from statusboard.websocket.connection_manager import BroadcastHub
from statusboard.websocket.message_protocol import IncidentsMessage, MetricsMessage

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_TIME_MS = 50
MIN_RESPONSE_TIME_MS = 5
RESPONSE_TIME_JITTER_MS = 5.0


class SystemMonitor:
    """
    Chooses between the remote host and the simulation for every tick and
    publishes what is stored.
    """

    def __init__(
        self,
        store: MemoryMetricsStore,
        integration: RemoteIntegration,
        simulation: SimulationFallback,
        hub: BroadcastHub,
        polling: PollingSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.integration = integration
        self.simulation = simulation
        self.hub = hub
        self.polling = polling or PollingSettings()
        self._rng = rng or random.Random()

    async def collect_metrics(self) -> MetricsSnapshot:
        """
        Acquire one snapshot and the process set, and store them.

        The remote host is used while the session is active; otherwise, or
        when the session is lost mid-pass, the simulation fills in.
        """
        snapshot = await self.integration.sample_metrics()
        if snapshot is None:
            snapshot = self.simulation.snapshot()
            processes = self.simulation.processes()
        else:
            processes = await self.integration.sample_processes()

        await self.store.append_snapshot(snapshot)
        if processes is not None:
            await self.store.replace_process_set(processes)
        logger.debug(
            f"Collected {snapshot.source.value} metrics: cpu={snapshot.cpu_usage_percent}%"
        )
        return snapshot

    async def refresh_services(self) -> None:
        """
        Sync discovered services while connected. Without a connection,
        stored response times drift by a few milliseconds so the dashboard
        keeps moving.
        """
        if self.integration.is_connection_active():
            await self.integration.discover_and_sync_services()
            return

        for service in await self.store.list_services():
            current = service.response_time_ms or DEFAULT_RESPONSE_TIME_MS
            variation = self._rng.uniform(-RESPONSE_TIME_JITTER_MS, RESPONSE_TIME_JITTER_MS)
            await self.store.update_service(
                service.id,
                {"response_time_ms": int(max(MIN_RESPONSE_TIME_MS, current + variation))},
            )

    async def build_metrics_message(self) -> MetricsMessage | None:
        """Latest snapshot with all services and the top processes by memory"""
        snapshot = await self.store.get_latest_snapshot()
        if snapshot is None:
            return None
        return MetricsMessage(
            snapshot=snapshot,
            services=await self.store.list_services(),
            processes=await self.store.top_processes(self.polling.broadcast_process_limit),
        )

    async def build_incidents_message(self) -> IncidentsMessage:
        return IncidentsMessage(incidents=await self.store.list_incidents())

    async def publish_metrics(self) -> int:
        message = await self.build_metrics_message()
        if message is None:
            return 0
        return await self.hub.publish(message)

    async def publish_incidents(self) -> int:
        return await self.hub.publish(await self.build_incidents_message())
