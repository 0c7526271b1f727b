"""
Shared fixtures: a scripted remote session and realistic command output.
"""

from typing import Any

import pytest

from statusboard.core.config import RemoteHostSettings
from statusboard.core.exceptions import SSHCommandError, SSHConnectionError
from statusboard.core.store import MemoryMetricsStore
from statusboard.services.parsers.metrics_parser import (
    CPUINFO_MHZ_COMMAND,
    DEFAULT_ROUTE_COMMAND,
    FREE_GB_COMMAND,
    LOADAVG_COMMAND,
    NET_DEV_COMMAND,
    NPROC_COMMAND,
    PROC_STAT_WINDOW_COMMAND,
    PROC_UPTIME_COMMAND,
)
from statusboard.services.parsers.process_parser import (
    DOCKER_AVAILABLE_COMMAND,
    DOCKER_PS_COMMAND,
    PS_EO_COMMAND,
)
from statusboard.services.parsers.service_parser import (
    DOCKER_SERVICES_COMMAND,
    PORT_SCAN_COMMAND,
    SYSTEMCTL_COMMAND,
)
from statusboard.utils.ssh_client import ConnectionState, SSHConnectionInfo

PROC_STAT_OUTPUT = """\
cpu  1000 0 500 8000 500 0 0 0 0 0
cpu0 500 0 250 4000 250 0 0 0 0 0
cpu1 500 0 250 4000 250 0 0 0 0 0
---
cpu  1300 0 600 8500 600 0 0 0 0 0
cpu0 700 0 300 4200 300 0 0 0 0 0
cpu1 600 0 300 4300 300 0 0 0 0 0
"""

FREE_GB_OUTPUT = """\
               total        used        free      shared  buff/cache   available
Mem:               7           2           1           0           4           5
Swap:              0           0           0
"""

NET_DEV_OUTPUT = """\
Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo:    1000      10    0    0    0     0          0         0     1000      10    0    0    0     0       0          0
  eth0:   50000     100    0    0    0     0          0         0    20000      80    0    0    0     0       0          0
"""

PS_EO_OUTPUT = """\
    1 root         1  0.0  0.3 /sbin/init splash
  812 www-data     4 12.5  2.1 /usr/sbin/nginx -g daemon off;
  900 postgres     7  3.2  8.4 /usr/lib/postgresql/14/bin/postgres -D /var/lib/postgresql
   42 root         1  0.0  0.0 [kworker/0:1-events]
"""

DOCKER_PS_OUTPUT = (
    "4f2a9c1b3d5e7f60\tredis\tredis:7\t\"docker-entrypoint.sh redis-server\"\n"
    "a1b2c3d4e5f60718\tapi\tghcr.io/acme/api:1.4\t\"uvicorn app:app\"\n"
)

SYSTEMCTL_OUTPUT = """\
nginx.service              loaded active running A high performance web server
dbus.service               loaded active running D-Bus System Message Bus
getty@tty1.service         loaded active running Getty on tty1
postgresql@14-main.service loaded failed failed  PostgreSQL Cluster 14-main
"""

DOCKER_SERVICES_OUTPUT = "redis\tUp 3 hours\napi\tUp 2 hours (unhealthy)\n"

PORT_SCAN_OUTPUT = "22 open\n80 open\n443 closed\n3306 closed\n5432 closed\n6379 open\n27017 closed\n"


class FakeRemoteSession:
    """
    Stand-in for RemoteSession that answers commands from a table.

    Keys are matched against the command exactly first, then as substrings
    in insertion order. A value may be a string (stdout) or an exception to
    raise. Unknown commands fail like a missing binary.
    """

    def __init__(self, responses: dict[str, Any] | None = None, host: str = "vps.example.com"):
        self.responses: dict[str, Any] = dict(responses or {})
        self.connection_info = SSHConnectionInfo(host=host, username="root", password="secret")
        self.state = ConnectionState.CONNECTED
        self.commands: list[str] = []
        self.connect_calls = 0
        self.close_calls = 0
        self.connect_error: Exception | None = None
        # Substring of a command that drops the connection when run
        self.lose_connection_on: str | None = None

    @property
    def hostname(self) -> str:
        return self.connection_info.host

    def is_active(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_error is not None:
            self.state = ConnectionState.FAILED
            raise self.connect_error
        self.state = ConnectionState.CONNECTED

    async def close(self) -> None:
        self.close_calls += 1
        self.state = ConnectionState.DISCONNECTED

    async def execute(self, command: str, timeout: float | None = None) -> str:
        self.commands.append(command)
        if self.lose_connection_on is not None and self.lose_connection_on in command:
            self.state = ConnectionState.DISCONNECTED
            raise SSHConnectionError("Connection lost", hostname=self.hostname)
        if not self.is_active():
            raise SSHConnectionError("Not connected", hostname=self.hostname)

        response = self._lookup(command)
        if response is None:
            raise SSHCommandError(
                "Command failed",
                command=command,
                hostname=self.hostname,
                exit_code=127,
                stderr=f"bash: {command.split()[0]}: command not found",
            )
        if isinstance(response, BaseException):
            raise response
        return response

    def _lookup(self, command: str) -> Any:
        if command in self.responses:
            return self.responses[command]
        for key, value in self.responses.items():
            if key in command:
                return value
        return None


def permission_denied(command: str) -> SSHCommandError:
    return SSHCommandError(
        "Command failed",
        command=command,
        hostname="vps.example.com",
        exit_code=1,
        stderr="Permission denied",
    )


@pytest.fixture
def metrics_outputs() -> dict[str, Any]:
    """Output of a healthy 2-core host with 7 GB of memory"""
    return {
        PROC_STAT_WINDOW_COMMAND: PROC_STAT_OUTPUT,
        CPUINFO_MHZ_COMMAND: "cpu MHz\t\t: 2399.998\n",
        NPROC_COMMAND: "2\n",
        FREE_GB_COMMAND: FREE_GB_OUTPUT,
        DEFAULT_ROUTE_COMMAND: "default via 10.0.0.1 dev eth0 proto dhcp src 10.0.0.5 metric 100\n",
        NET_DEV_COMMAND: NET_DEV_OUTPUT,
        LOADAVG_COMMAND: "0.52 0.58 0.59 1/123 4567\n",
        PROC_UPTIME_COMMAND: "12345.67 23456.78\n",
    }


@pytest.fixture
def process_outputs() -> dict[str, Any]:
    return {
        PS_EO_COMMAND: PS_EO_OUTPUT,
        DOCKER_AVAILABLE_COMMAND: "/usr/bin/docker\n",
        DOCKER_PS_COMMAND: DOCKER_PS_OUTPUT,
    }


@pytest.fixture
def discovery_outputs() -> dict[str, Any]:
    return {
        SYSTEMCTL_COMMAND: SYSTEMCTL_OUTPUT,
        DOCKER_AVAILABLE_COMMAND: "/usr/bin/docker\n",
        DOCKER_SERVICES_COMMAND: DOCKER_SERVICES_OUTPUT,
        PORT_SCAN_COMMAND: PORT_SCAN_OUTPUT,
    }


@pytest.fixture
def healthy_session(metrics_outputs, process_outputs, discovery_outputs) -> FakeRemoteSession:
    return FakeRemoteSession({**metrics_outputs, **process_outputs, **discovery_outputs})


@pytest.fixture
def store() -> MemoryMetricsStore:
    return MemoryMetricsStore(history_capacity=10)


@pytest.fixture
def remote_settings() -> RemoteHostSettings:
    return RemoteHostSettings(
        VPS_HOST="vps.example.com",
        VPS_USERNAME="root",
        VPS_PASSWORD="secret",
        SSH_RECONNECT_DELAY=2.0,
    )


@pytest.fixture
def unconfigured_settings() -> RemoteHostSettings:
    return RemoteHostSettings(VPS_HOST=None, VPS_USERNAME=None, VPS_PASSWORD=None)


@pytest.fixture
def make_session():
    """Factory for FakeRemoteSession with a given response table"""
    return FakeRemoteSession


@pytest.fixture
def deny():
    """Factory for a permission-denied command failure"""
    return permission_denied
