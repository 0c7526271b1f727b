"""
Status Board - Custom Exceptions

This module defines the exception hierarchy shared by the SSH session, the
metric probes and the administrative boundary, providing structured error
handling with detailed context information.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class StatusBoardException(Exception):
    """Base exception class for status board errors"""

    def __init__(
        self,
        message: str,
        error_code: str = "STATUS_BOARD_ERROR",
        details: Optional[Dict[str, Any]] = None,
        hostname: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.hostname = hostname
        self.operation = operation
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "hostname": self.hostname,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
        }


class SSHAuthenticationError(StatusBoardException):
    """Raised when the remote host rejects the configured credentials"""

    def __init__(
        self,
        message: str = "SSH authentication failed",
        hostname: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_code="SSH_AUTHENTICATION_ERROR",
            details=details,
            hostname=hostname,
            operation="ssh_connect",
        )


class SSHConnectionError(StatusBoardException):
    """Raised when the SSH connection cannot be established or was lost"""

    def __init__(
        self, message: str, hostname: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="SSH_CONNECTION_ERROR",
            details=details or {},
            hostname=hostname,
            operation="ssh_connect",
        )


class SSHTimeoutError(SSHConnectionError):
    """Raised when an SSH connect or command exceeds its time limit"""

    def __init__(
        self,
        message: str = "SSH operation timed out",
        hostname: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        operation: Optional[str] = None,
    ):
        details = {}
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds

        super().__init__(message=message, hostname=hostname, details=details)
        self.error_code = "SSH_TIMEOUT_ERROR"
        self.operation = operation or "ssh_operation"


class SSHCommandError(StatusBoardException):
    """Raised when a remote command exits non-zero and writes to stderr"""

    def __init__(
        self,
        message: str,
        command: str,
        hostname: Optional[str] = None,
        exit_code: Optional[int] = None,
        stderr: Optional[str] = None,
        error_type: Optional[str] = None,
    ):
        details = {
            "command": command,
            "exit_code": exit_code,
            "stderr": stderr,
            "error_type": error_type,
        }

        super().__init__(
            message=message,
            error_code="SSH_COMMAND_ERROR",
            details=details,
            hostname=hostname,
            operation="ssh_execute",
        )
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        self.error_type = error_type


class ProbeParseError(StatusBoardException):
    """Raised when command output does not have the expected shape"""

    def __init__(self, message: str, probe: Optional[str] = None, output: Optional[str] = None):
        details: Dict[str, Any] = {}
        if probe:
            details["probe"] = probe
        if output is not None:
            details["output"] = output[:200]

        super().__init__(
            message=message,
            error_code="PROBE_PARSE_ERROR",
            details=details,
            operation="probe_parse",
        )


class ResourceNotFoundError(StatusBoardException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: Optional[str] = None,
    ):
        details = {"resource_type": resource_type}
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message=message,
            error_code="RESOURCE_NOT_FOUND",
            details=details,
            operation="resource_lookup",
        )


class ServiceNotFoundError(ResourceNotFoundError):
    """Raised when a tracked service id is unknown"""

    def __init__(self, service_id: str):
        super().__init__(
            message=f"Service not found: {service_id}",
            resource_type="service",
            resource_id=service_id,
        )


class IncidentNotFoundError(ResourceNotFoundError):
    """Raised when an incident id is unknown"""

    def __init__(self, incident_id: str):
        super().__init__(
            message=f"Incident not found: {incident_id}",
            resource_type="incident",
            resource_id=incident_id,
        )
