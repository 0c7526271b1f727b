"""
Service layer for discovering services on the monitored host.
"""

import logging
import random

from statusboard.core.exceptions import StatusBoardException
from statusboard.core.store import MemoryMetricsStore
from statusboard.schemas.service import ServiceCreate, ServiceRecord, ServiceStatus
from statusboard.services.parsers.base_parser import CommandRunner, Probe, ProbeChain
from statusboard.services.parsers.process_parser import DOCKER_AVAILABLE_COMMAND
from statusboard.services.parsers.service_parser import (
    DOCKER_SERVICES_COMMAND,
    PORT_SCAN_COMMAND,
    SYSTEMCTL_COMMAND,
    DiscoveredService,
    DiscoverySource,
    parse_docker_services,
    parse_port_scan,
    parse_systemctl_units,
)

logger = logging.getLogger(__name__)

# Low-level units that are never surfaced as monitored services
DENIED_UNITS = frozenset(
    {
        "init",
        "dbus",
        "dbus-broker",
        "NetworkManager",
        "NetworkManager-dispatcher",
        "NetworkManager-wait-online",
        "networking",
        "systemd-networkd",
        "systemd-networkd-wait-online",
        "systemd-resolved",
        "systemd-timesyncd",
        "systemd-journald",
        "systemd-journal-flush",
        "rsyslog",
        "syslog",
        "udev",
        "systemd-udevd",
        "systemd-udev-trigger",
        "systemd-logind",
        "systemd-user-sessions",
        "systemd-tmpfiles-setup",
        "systemd-tmpfiles-setup-dev",
        "systemd-sysctl",
        "systemd-modules-load",
        "systemd-remount-fs",
        "systemd-random-seed",
        "systemd-update-utmp",
        "polkit",
        "getty",
        "console-setup",
        "keyboard-setup",
        "kmod-static-nodes",
    }
)
DENIED_UNIT_PREFIXES = ("getty@", "serial-getty@", "user@", "user-runtime-dir@", "session-")


def is_denied(name: str) -> bool:
    return name in DENIED_UNITS or name.startswith(DENIED_UNIT_PREFIXES)


class ServiceDiscovery:
    """
    Enumerates systemd units, running containers and open common ports, and
    reconciles them into the store by name.
    """

    def __init__(
        self,
        session: CommandRunner,
        rng: random.Random | None = None,
        include_containers: bool = True,
        include_ports: bool = True,
    ) -> None:
        self.session = session
        self._rng = rng or random.Random()
        self.include_containers = include_containers
        self.include_ports = include_ports
        self.systemd_chain: ProbeChain[list[DiscoveredService]] = ProbeChain(
            "systemd_units", [Probe("systemctl", SYSTEMCTL_COMMAND, parse_systemctl_units)], default=list
        )
        self.container_chain: ProbeChain[list[DiscoveredService]] = ProbeChain(
            "containers", [Probe("docker_ps", DOCKER_SERVICES_COMMAND, parse_docker_services)], default=list
        )
        self.port_chain: ProbeChain[list[DiscoveredService]] = ProbeChain(
            "ports", [Probe("port_scan", PORT_SCAN_COMMAND, parse_port_scan, timeout=20)], default=list
        )

    async def discover(self) -> list[ServiceCreate]:
        """Discovered services, deny-listed units removed, first name wins"""
        found = await self.systemd_chain.run(self.session)
        if self.include_containers and await self._docker_available():
            found += await self.container_chain.run(self.session)
        if self.include_ports:
            found += await self.port_chain.run(self.session)

        services: dict[str, ServiceCreate] = {}
        for item in found:
            if item.source == DiscoverySource.SYSTEMD and is_denied(item.name):
                continue
            if item.name not in services:
                services[item.name] = self._to_service(item)
        return list(services.values())

    async def sync(self, store: MemoryMetricsStore) -> list[ServiceRecord]:
        """
        Insert every discovered service whose name is not stored yet.

        Existing records, including manually created ones, are left
        untouched, so repeated syncs are idempotent.

        Returns:
            list[ServiceRecord]: Records created by this sync
        """
        created: list[ServiceRecord] = []
        for service in await self.discover():
            record, was_created = await store.upsert_service_if_absent(service)
            if was_created:
                created.append(record)

        logger.info(
            "service_discovery.sync",
            extra={"created_count": len(created), "service_names": [record.name for record in created]},
        )
        return created

    async def _docker_available(self) -> bool:
        try:
            return bool((await self.session.execute(DOCKER_AVAILABLE_COMMAND)).strip())
        except StatusBoardException as e:
            logger.debug(f"Container runtime check failed: {e.message}")
            return False

    def _to_service(self, item: DiscoveredService) -> ServiceCreate:
        if item.source == DiscoverySource.PORT:
            return ServiceCreate(
                name=item.name,
                status=ServiceStatus.OPERATIONAL,
                response_time_ms=self._rng.randint(5, 54),
                uptime_percent=round(99.8 + self._rng.random() * 0.2, 2),
            )

        if item.degraded:
            status = ServiceStatus.DEGRADED
        elif item.active:
            status = ServiceStatus.OPERATIONAL
        else:
            status = ServiceStatus.OUTAGE
        return ServiceCreate(
            name=item.name,
            status=status,
            response_time_ms=self._rng.randint(10, 109),
            uptime_percent=99.9 if status == ServiceStatus.OPERATIONAL else 0.0,
        )
