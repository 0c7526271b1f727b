"""
Status Board - Utilities Package

SSH session management, SSH error classification and route error handling.
"""

from .ssh_client import ConnectionState, RemoteSession, SSHConnectionInfo
from .ssh_errors import SSHErrorClassifier, SSHErrorType, translate_connect_error

__all__ = [
    # SSH Client
    "ConnectionState",
    "RemoteSession",
    "SSHConnectionInfo",
    # SSH Error Handling
    "SSHErrorClassifier",
    "SSHErrorType",
    "translate_connect_error",
]
