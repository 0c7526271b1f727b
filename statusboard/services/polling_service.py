"""
Service layer for background polling: the periodic monitoring jobs and the
delayed first connection to the remote host.
"""

import asyncio
import contextlib
from enum import Enum
import logging
from typing import Any, Awaitable, Callable

from statusboard.core.config import PollingSettings
from statusboard.services.remote_integration import RemoteIntegration
from statusboard.services.system_monitor import SystemMonitor

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class PeriodicJob:
    """
    Runs an async action every ``interval`` seconds.

    A tick that arrives while the previous run is still in progress is
    skipped and counted, so runs of one job never overlap.
    """

    def __init__(self, name: str, interval: float, action: Callable[[], Awaitable[Any]]):
        self.name = name
        self.interval = interval
        self.action = action
        self.state = JobState.IDLE
        self.run_count = 0
        self.skipped_count = 0
        self.failure_count = 0
        self.last_error: str | None = None
        self._loop_task: asyncio.Task | None = None
        self._run_task: asyncio.Task | None = None

    async def trigger(self) -> bool:
        """Run the action now unless a run is in progress; returns whether it ran"""
        if self.state == JobState.RUNNING:
            self.skipped_count += 1
            logger.debug(f"Job {self.name} still running, tick skipped")
            return False

        self.state = JobState.RUNNING
        try:
            await self.action()
            self.run_count += 1
        except Exception as e:
            self.failure_count += 1
            self.last_error = str(e)
            logger.error(f"Job {self.name} failed: {e}", exc_info=True)
        finally:
            self.state = JobState.IDLE
        return True

    def start(self, initial_delay: float = 0) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self._loop(initial_delay), name=f"job:{self.name}")

    async def stop(self) -> None:
        for task in (self._loop_task, self._run_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._loop_task = None
        self._run_task = None
        self.state = JobState.IDLE

    async def _loop(self, initial_delay: float) -> None:
        if initial_delay > 0:
            await asyncio.sleep(initial_delay)
        while True:
            self._tick()
            await asyncio.sleep(self.interval)

    def _tick(self) -> None:
        if self.state == JobState.RUNNING:
            self.skipped_count += 1
            logger.debug(f"Job {self.name} still running, tick skipped")
            return
        # Runs are separate tasks; the loop keeps its own cadence
        self._run_task = asyncio.create_task(self.trigger(), name=f"job-run:{self.name}")

    def get_status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "interval_seconds": self.interval,
            "runs": self.run_count,
            "skipped": self.skipped_count,
            "failures": self.failure_count,
            "last_error": self.last_error,
        }


class PollingService:
    """Owns the monitoring jobs and the first connection attempt"""

    def __init__(
        self,
        monitor: SystemMonitor,
        integration: RemoteIntegration,
        settings: PollingSettings,
        recheck_interval: float = 60,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.monitor = monitor
        self.integration = integration
        self.settings = settings
        self._sleep = sleep
        self.is_running = False
        self._connect_task: asyncio.Task | None = None

        self.jobs: dict[str, PeriodicJob] = {
            "acquisition": PeriodicJob("acquisition", settings.metrics_interval, monitor.collect_metrics),
            "metrics_broadcast": PeriodicJob(
                "metrics_broadcast", settings.broadcast_interval, monitor.publish_metrics
            ),
            "service_refresh": PeriodicJob(
                "service_refresh", settings.service_interval, monitor.refresh_services
            ),
            "incident_broadcast": PeriodicJob(
                "incident_broadcast", settings.incident_interval, monitor.publish_incidents
            ),
        }
        if integration.is_configured:
            self.jobs["connection_recheck"] = PeriodicJob(
                "connection_recheck", recheck_interval, integration.ensure_connected
            )

    async def start(self) -> None:
        """Start the background polling jobs"""
        if self.is_running:
            logger.warning("Polling service is already running")
            return

        self.is_running = True
        startup_delay = self.settings.startup_delay
        logger.info(
            "polling.start",
            extra={"startup_delay_seconds": startup_delay, "jobs": list(self.jobs)},
        )

        for name, job in self.jobs.items():
            # The first connection attempt is made by _initial_connect
            job.start(initial_delay=job.interval if name == "connection_recheck" else startup_delay)

        if self.integration.is_configured:
            self._connect_task = asyncio.create_task(self._initial_connect(), name="initial-connect")

    async def stop(self) -> None:
        """Stop all polling jobs"""
        if not self.is_running:
            return

        logger.info("Stopping polling service")
        self.is_running = False

        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._connect_task
        self._connect_task = None

        for job in self.jobs.values():
            await job.stop()

    async def _initial_connect(self) -> None:
        await self._sleep(self.settings.connect_grace)
        if await self.integration.connect():
            created = await self.integration.discover_and_sync_services()
            logger.info(f"Initial service discovery created {len(created)} services")
        else:
            logger.info("Initial connection failed, serving simulated metrics until the next re-check")

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "jobs": {name: job.get_status() for name, job in self.jobs.items()},
        }
