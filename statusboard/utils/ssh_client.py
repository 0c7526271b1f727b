"""
Status Board - SSH Communication Layer

This module owns the single long-lived SSH session to the monitored host:
connection lifecycle, serialized command execution, loss detection and error
translation into the status board exception hierarchy.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import asyncssh
from asyncssh import SSHClientConnection

from statusboard.core.exceptions import SSHCommandError, SSHConnectionError, SSHTimeoutError
from statusboard.utils.ssh_errors import SSHErrorClassifier, translate_connect_error

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[SSHClientConnection]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass(frozen=True)
class SSHConnectionInfo:
    """SSH connection configuration for the monitored host"""

    host: str
    port: int = 22
    username: str = "root"
    password: Optional[str] = None
    connect_timeout: float = 30
    command_timeout: float = 15
    keepalive_interval: float = 10

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


class _SessionClient(asyncssh.SSHClient):
    """Reports connection loss back to the owning session.

    Each client is bound to the generation of the connect attempt that
    created it, so a late callback from an old connection is ignored.
    """

    def __init__(self, session: "RemoteSession", generation: int):
        self._session = session
        self._generation = generation

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._session._on_connection_lost(self._generation, exc)


class RemoteSession:
    """
    One SSH connection to one host, at most one command in flight.

    The session connects lazily: construct it from configuration at startup
    and call ``connect()`` when the host should be contacted. ``state`` is
    the authoritative connection flag for the rest of the application.
    """

    def __init__(self, connection_info: SSHConnectionInfo, connector: Optional[Connector] = None):
        """
        Initialize the session.

        Args:
            connection_info: Host, credentials and timeouts
            connector: Coroutine used to open connections, ``asyncssh.connect`` by default
        """
        self.connection_info = connection_info
        self._connector = connector or asyncssh.connect
        self._connection: Optional[SSHClientConnection] = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = asyncio.Lock()
        self._generation = 0
        self.last_error: Optional[str] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def hostname(self) -> str:
        return self.connection_info.host

    def is_active(self) -> bool:
        """True only while connected over a live connection"""
        if self._state != ConnectionState.CONNECTED or self._connection is None:
            return False
        return not self._connection.is_closed()

    async def connect(self) -> None:
        """
        Open the SSH connection.

        Raises:
            SSHAuthenticationError: Credentials were rejected
            SSHTimeoutError: The host did not answer within the connect timeout
            SSHConnectionError: Any other network or protocol failure
        """
        if self.is_active():
            return

        if self._connection is not None:
            # Left behind by a lost connection
            stale, self._connection = self._connection, None
            stale.close()

        info = self.connection_info
        self._generation += 1
        generation = self._generation
        self._state = ConnectionState.CONNECTING

        connect_kwargs: dict[str, Any] = {
            "host": info.host,
            "port": info.port,
            "username": info.username,
            "known_hosts": None,
            "connect_timeout": info.connect_timeout,
            "login_timeout": info.connect_timeout,
            "keepalive_interval": info.keepalive_interval,
            "client_factory": lambda: _SessionClient(self, generation),
        }
        if info.password:
            connect_kwargs["password"] = info.password

        logger.info(f"Opening SSH connection to {info.address} as {info.username}")
        try:
            connection = await self._connector(**connect_kwargs)
        except Exception as e:
            error = translate_connect_error(e, info.host, info.connect_timeout)
            if generation == self._generation:
                self._state = ConnectionState.FAILED
            self.last_error = error.message
            logger.warning(f"SSH connection to {info.address} failed: {error.message}")
            raise error from e

        if generation != self._generation:
            # close() ran while the handshake was in progress
            connection.close()
            raise SSHConnectionError(
                message=f"SSH connection to {info.address} was closed while connecting",
                hostname=info.host,
            )

        self._connection = connection
        self._state = ConnectionState.CONNECTED
        self.last_error = None
        logger.info(f"SSH connection established to {info.address}")

    async def execute(self, command: str, timeout: Optional[float] = None) -> str:
        """
        Run exactly one command and return its stdout.

        A non-zero exit status is only an error when stderr is non-empty;
        otherwise stdout is returned as-is.

        Args:
            command: Shell command line
            timeout: Seconds to wait, defaults to the configured command timeout

        Returns:
            str: Command stdout

        Raises:
            SSHConnectionError: Session not connected, or lost during the command
            SSHTimeoutError: Command did not finish in time
            SSHCommandError: Non-zero exit status with stderr output
        """
        timeout = timeout or self.connection_info.command_timeout

        async with self._lock:
            if not self.is_active():
                raise SSHConnectionError(
                    message=f"SSH session to {self.connection_info.address} is not connected",
                    hostname=self.hostname,
                )
            connection = self._connection
            generation = self._generation

            try:
                result = await asyncio.wait_for(connection.run(command, check=False), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise SSHTimeoutError(
                    message=f"Command timed out after {timeout}s: {command}",
                    hostname=self.hostname,
                    timeout_seconds=timeout,
                    operation="ssh_execute",
                ) from e
            except (asyncssh.Error, OSError) as e:
                if SSHErrorClassifier.is_session_fatal(e):
                    self._on_connection_lost(generation, e)
                raise SSHConnectionError(
                    message=f"SSH execution error on {self.hostname}: {e}",
                    hostname=self.hostname,
                    details={"command": command},
                ) from e

        stdout = _as_text(result.stdout)
        stderr = _as_text(result.stderr)
        exit_status = result.exit_status

        if exit_status not in (0, None) and stderr.strip():
            error_type = SSHErrorClassifier.classify_command_failure(stderr, exit_status)
            raise SSHCommandError(
                message=f"Command failed on {self.hostname} with exit status {exit_status}: {error_type.value}",
                command=command,
                hostname=self.hostname,
                exit_code=exit_status,
                stderr=stderr.strip(),
                error_type=error_type.value,
            )

        logger.debug(f"Command on {self.hostname} exited {exit_status}: {command[:50]}")
        return stdout

    async def close(self) -> None:
        """Close the connection; safe to call any number of times"""
        # Invalidate callbacks from the connection being closed
        self._generation += 1
        connection, self._connection = self._connection, None
        self._state = ConnectionState.DISCONNECTED

        if connection is None:
            return

        connection.close()
        try:
            await asyncio.wait_for(connection.wait_closed(), timeout=5.0)
        except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Error while closing SSH connection to {self.hostname}: {e}")
        logger.info(f"SSH connection to {self.connection_info.address} closed")

    def _on_connection_lost(self, generation: int, exc: Optional[BaseException]) -> None:
        if generation != self._generation or self._state != ConnectionState.CONNECTED:
            return
        self._state = ConnectionState.DISCONNECTED
        self.last_error = str(exc) if exc else "connection closed by remote host"
        logger.warning(f"SSH connection to {self.connection_info.address} lost: {self.last_error}")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
