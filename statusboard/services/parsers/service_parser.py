"""
Service Discovery Parsers

Parses systemd unit listings, running containers and a localhost port scan
into DiscoveredService entries.
"""

from dataclasses import dataclass
from enum import Enum

from statusboard.core.exceptions import ProbeParseError

# Common service ports probed on the monitored host
COMMON_PORTS: dict[int, str] = {
    22: "SSH",
    80: "HTTP",
    443: "HTTPS",
    3306: "MySQL",
    5432: "PostgreSQL",
    6379: "Redis",
    27017: "MongoDB",
}

SYSTEMCTL_COMMAND = (
    "systemctl list-units --type=service --state=active --no-pager --no-legend --plain"
)
DOCKER_SERVICES_COMMAND = "docker ps --format '{{.Names}}\\t{{.Status}}'"
PORT_SCAN_COMMAND = (
    "for port in " + " ".join(str(port) for port in COMMON_PORTS) + "; do "
    'if timeout 2 bash -c "</dev/tcp/localhost/$port" 2>/dev/null; '
    'then echo "$port open"; else echo "$port closed"; fi; done'
)


class DiscoverySource(str, Enum):
    SYSTEMD = "systemd"
    CONTAINER = "container"
    PORT = "port"


@dataclass(frozen=True)
class DiscoveredService:
    name: str
    source: DiscoverySource
    active: bool = True
    degraded: bool = False


def parse_systemctl_units(output: str) -> list[DiscoveredService]:
    """
    Parse ``systemctl list-units --plain --no-legend`` rows.

    Columns are UNIT LOAD ACTIVE SUB DESCRIPTION; a leading status bullet
    from older systemd versions is ignored.
    """
    services: list[DiscoveredService] = []
    for line in (output or "").splitlines():
        fields = line.replace("●", " ").split()
        if len(fields) < 3 or not fields[0].endswith(".service"):
            continue
        services.append(
            DiscoveredService(
                name=fields[0].removesuffix(".service"),
                source=DiscoverySource.SYSTEMD,
                active=fields[2] == "active",
            )
        )
    return services


def parse_docker_services(output: str) -> list[DiscoveredService]:
    """Running containers; a status mentioning ``unhealthy`` is degraded"""
    services: list[DiscoveredService] = []
    for line in (output or "").splitlines():
        name, _, status = line.strip().partition("\t")
        if not name:
            continue
        status = status.lower()
        services.append(
            DiscoveredService(
                name=name,
                source=DiscoverySource.CONTAINER,
                active=status.startswith("up") or not status,
                degraded="unhealthy" in status,
            )
        )
    return services


def parse_port_scan(output: str) -> list[DiscoveredService]:
    """Open ports from ``<port> open|closed`` lines"""
    services: list[DiscoveredService] = []
    seen = 0
    for line in (output or "").splitlines():
        fields = line.split()
        if len(fields) != 2 or not fields[0].isdigit():
            continue
        seen += 1
        port, state = int(fields[0]), fields[1]
        if state == "open" and port in COMMON_PORTS:
            services.append(DiscoveredService(name=COMMON_PORTS[port], source=DiscoverySource.PORT))
    if not seen:
        raise ProbeParseError("No port scan results", probe="port_scan", output=output or "")
    return services
