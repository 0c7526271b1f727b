"""
Status Board - SSH Error Classification

Maps asyncssh / socket failures and command stderr onto a small set of error
types, and translates connect failures into the status board exception
hierarchy so callers only ever see ``StatusBoardException`` subclasses.
"""

import asyncio
import re
import logging
from enum import Enum
from typing import Dict, List, Optional, Pattern

import asyncssh

from statusboard.core.exceptions import (
    SSHAuthenticationError,
    SSHConnectionError,
    SSHTimeoutError,
    StatusBoardException,
)

logger = logging.getLogger(__name__)


class SSHErrorType(Enum):
    """Classification of SSH errors for handling decisions"""

    # Connection errors
    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_TIMEOUT = "connection_timeout"
    CONNECTION_LOST = "connection_lost"
    HOST_UNREACHABLE = "host_unreachable"
    DNS_RESOLUTION_FAILED = "dns_resolution_failed"

    # Authentication errors
    AUTH_FAILED = "authentication_failed"

    # Command execution errors
    PERMISSION_DENIED = "permission_denied"
    COMMAND_NOT_FOUND = "command_not_found"
    COMMAND_FAILED = "command_failed"

    # SSH protocol errors
    CHANNEL_OPEN_FAILED = "channel_open_failed"

    UNKNOWN_ERROR = "unknown_error"


# Types after which the connection can no longer be used
SESSION_FATAL_ERRORS = frozenset(
    {
        SSHErrorType.CONNECTION_LOST,
        SSHErrorType.CHANNEL_OPEN_FAILED,
        SSHErrorType.CONNECTION_REFUSED,
        SSHErrorType.HOST_UNREACHABLE,
    }
)


class SSHErrorClassifier:
    """
    Classify SSH errors using exception types first, then return codes, then
    pattern matching on the error text.
    """

    ERROR_PATTERNS: Dict[SSHErrorType, List[Pattern[str]]] = {
        SSHErrorType.CONNECTION_REFUSED: [
            re.compile(r"connection refused", re.IGNORECASE),
        ],
        SSHErrorType.CONNECTION_TIMEOUT: [
            re.compile(r"connection timed out", re.IGNORECASE),
            re.compile(r"timeout during connect", re.IGNORECASE),
        ],
        SSHErrorType.HOST_UNREACHABLE: [
            re.compile(r"no route to host", re.IGNORECASE),
            re.compile(r"network is unreachable", re.IGNORECASE),
        ],
        SSHErrorType.DNS_RESOLUTION_FAILED: [
            re.compile(r"name or service not known", re.IGNORECASE),
            re.compile(r"could not resolve hostname", re.IGNORECASE),
            re.compile(r"temporary failure in name resolution", re.IGNORECASE),
        ],
        SSHErrorType.PERMISSION_DENIED: [
            re.compile(r"permission denied", re.IGNORECASE),
            re.compile(r"operation not permitted", re.IGNORECASE),
        ],
        SSHErrorType.COMMAND_NOT_FOUND: [
            re.compile(r"command not found", re.IGNORECASE),
        ],
    }

    @classmethod
    def classify(
        cls,
        exception: Optional[BaseException] = None,
        stderr: Optional[str] = None,
        return_code: Optional[int] = None,
    ) -> SSHErrorType:
        """
        Classify an SSH error.

        Args:
            exception: Exception that occurred
            stderr: Command stderr output
            return_code: Command return code

        Returns:
            SSHErrorType: Best matching classification
        """
        if exception is not None:
            error_type = cls._classify_by_exception_type(exception)
            if error_type != SSHErrorType.UNKNOWN_ERROR:
                return error_type

        if return_code is not None:
            error_type = cls._classify_by_return_code(return_code)
            if error_type != SSHErrorType.UNKNOWN_ERROR:
                return error_type

        error_text = " ".join(part for part in (str(exception or ""), stderr or "") if part)
        for error_type, patterns in cls.ERROR_PATTERNS.items():
            for pattern in patterns:
                if pattern.search(error_text):
                    logger.debug(f"Classified error as {error_type.value}: {error_text[:100]}")
                    return error_type

        logger.debug(f"Unclassified error: {error_text[:100]}")
        return SSHErrorType.UNKNOWN_ERROR

    @classmethod
    def _classify_by_exception_type(cls, exception: BaseException) -> SSHErrorType:
        if isinstance(exception, asyncssh.PermissionDenied):
            return SSHErrorType.AUTH_FAILED
        elif isinstance(exception, asyncssh.ChannelOpenError):
            return SSHErrorType.CHANNEL_OPEN_FAILED
        elif isinstance(exception, (asyncssh.ConnectionLost, asyncssh.DisconnectError)):
            return SSHErrorType.CONNECTION_LOST
        elif isinstance(exception, ConnectionRefusedError):
            return SSHErrorType.CONNECTION_REFUSED
        elif isinstance(exception, (asyncio.TimeoutError, TimeoutError)):
            return SSHErrorType.CONNECTION_TIMEOUT
        elif isinstance(exception, (BrokenPipeError, ConnectionResetError)):
            return SSHErrorType.CONNECTION_LOST

        return SSHErrorType.UNKNOWN_ERROR

    @classmethod
    def _classify_by_return_code(cls, return_code: int) -> SSHErrorType:
        if return_code == 126:
            return SSHErrorType.PERMISSION_DENIED
        elif return_code == 127:
            return SSHErrorType.COMMAND_NOT_FOUND
        elif return_code == 255:
            return SSHErrorType.CONNECTION_REFUSED

        return SSHErrorType.UNKNOWN_ERROR

    @classmethod
    def classify_command_failure(cls, stderr: str, return_code: Optional[int]) -> SSHErrorType:
        """Classify a command that exited non-zero; unmatched failures are COMMAND_FAILED"""
        error_type = cls.classify(stderr=stderr, return_code=return_code)
        if error_type == SSHErrorType.UNKNOWN_ERROR:
            return SSHErrorType.COMMAND_FAILED
        return error_type

    @classmethod
    def is_session_fatal(cls, exception: BaseException) -> bool:
        """True when ``exception`` means the SSH connection itself is gone"""
        return cls._classify_by_exception_type(exception) in SESSION_FATAL_ERRORS


def translate_connect_error(
    exception: BaseException, hostname: str, timeout: Optional[float] = None
) -> StatusBoardException:
    """
    Convert a failure raised while opening a connection into the matching
    status board exception.

    Args:
        exception: Exception raised by ``asyncssh.connect``
        hostname: Host that was being contacted
        timeout: Connect timeout in effect, reported on timeouts

    Returns:
        StatusBoardException: Authentication, timeout or connection error
    """
    if isinstance(exception, StatusBoardException):
        return exception

    error_type = SSHErrorClassifier.classify(exception)
    reason = str(exception) or type(exception).__name__

    if error_type == SSHErrorType.AUTH_FAILED:
        return SSHAuthenticationError(
            message=f"SSH authentication failed for {hostname}: {reason}",
            hostname=hostname,
            details={"error_type": error_type.value},
        )
    if error_type == SSHErrorType.CONNECTION_TIMEOUT:
        return SSHTimeoutError(
            message=f"SSH connection to {hostname} timed out",
            hostname=hostname,
            timeout_seconds=timeout,
            operation="ssh_connect",
        )
    return SSHConnectionError(
        message=f"SSH connection to {hostname} failed: {reason}",
        hostname=hostname,
        details={"error_type": error_type.value},
    )
