"""
Shared API dependencies: the rate limiter and accessors for the pipeline
objects that main.create_app() stores on ``app.state``.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from statusboard.core.config import get_settings
from statusboard.core.store import MemoryMetricsStore
from statusboard.services.remote_integration import RemoteIntegration
from statusboard.services.system_monitor import SystemMonitor

# Rate limiter for API endpoints
settings = get_settings()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.api.rate_limit_requests_per_minute}/minute"]
    if settings.api.rate_limit_enabled
    else [],
    enabled=settings.api.rate_limit_enabled,
)

# Per-endpoint limit for read endpoints
READ_LIMIT = f"{settings.api.rate_limit_requests_per_minute}/minute"
# Remote service actions run commands on the host
ACTION_LIMIT = "10/minute"


def get_store(request: Request) -> MemoryMetricsStore:
    return request.app.state.store


def get_monitor(request: Request) -> SystemMonitor:
    return request.app.state.monitor


def get_integration(request: Request) -> RemoteIntegration:
    return request.app.state.integration
