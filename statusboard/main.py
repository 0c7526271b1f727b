"""
Status Board - Main Application

FastAPI application serving the public dashboard API, the admin API and the
live WebSocket stream, with the monitoring pipeline running as background
jobs for the lifetime of the app.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import time
from typing import Any, AsyncGenerator, cast
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from statusboard.api import api_router
from statusboard.api.common import limiter
from statusboard.core.config import ApplicationSettings, get_settings
from statusboard.core.exceptions import StatusBoardException
from statusboard.core.logging import set_request_id, setup_logging
from statusboard.core.store import MemoryMetricsStore
from statusboard.services.polling_service import PollingService
from statusboard.services.remote_integration import RemoteIntegration
from statusboard.services.simulation import SimulationFallback
from statusboard.services.system_monitor import SystemMonitor
from statusboard.websocket import BroadcastHub, websocket_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Map error codes to HTTP status codes
STATUS_CODE_MAP = {
    "RESOURCE_NOT_FOUND": 404,
    "SSH_AUTHENTICATION_ERROR": 503,
    "SSH_CONNECTION_ERROR": 503,
    "SSH_TIMEOUT_ERROR": 504,
    "SSH_COMMAND_ERROR": 502,
    "PROBE_PARSE_ERROR": 502,
}


def init_app_state(app: FastAPI) -> None:
    """
    Build the monitoring pipeline and store it on ``app.state``.

    Order: store, remote integration (lazy session), simulation, hub,
    monitor, polling. Nothing is connected or started here.
    """
    settings: ApplicationSettings = app.state.settings

    store = MemoryMetricsStore(history_capacity=settings.retention.metrics_history_capacity)
    integration = RemoteIntegration(settings.remote, store, polling=settings.polling)
    simulation = SimulationFallback()
    hub = BroadcastHub(
        send_timeout=settings.websocket.websocket_send_timeout,
        max_connections=settings.websocket.websocket_max_connections,
    )
    monitor = SystemMonitor(store, integration, simulation, hub, polling=settings.polling)
    # New subscribers get a freshly built metrics message
    hub.initial_message_factory = monitor.build_metrics_message
    polling_service = PollingService(
        monitor,
        integration,
        settings.polling,
        recheck_interval=settings.remote.recheck_interval,
    )

    app.state.store = store
    app.state.integration = integration
    app.state.simulation = simulation
    app.state.hub = hub
    app.state.monitor = monitor
    app.state.polling_service = polling_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown tasks"""
    settings: ApplicationSettings = app.state.settings
    logger.info("Starting status board...")

    init_app_state(app)
    try:
        await app.state.polling_service.start()

        logger.info(f"Environment: {settings.environment}")
        if settings.remote.is_configured:
            logger.info(f"Remote host: {settings.remote.vps_host}:{settings.remote.vps_port}")
        else:
            logger.info("Remote host: not configured, metrics are simulated")
        logger.info(f"API Server: {settings.api.api_host}:{settings.api.api_port}")

        yield
    finally:
        logger.info("Shutting down status board...")

        await app.state.polling_service.stop()
        logger.info("Polling service stopped")

        await app.state.integration.disconnect()
        logger.info("SSH session closed")

        await app.state.hub.close_all()
        logger.info("Shutdown complete")


# Wrapper for rate limit exception handler to fix type compatibility
def rate_limit_handler(request: Request, exc: Exception) -> Response:
    """Wrapper for slowapi rate limit handler with proper typing"""
    if isinstance(exc, RateLimitExceeded):
        return _rate_limit_exceeded_handler(request, exc)
    return JSONResponse({"error": "Rate limit exceeded"}, status_code=429)


def _error_body(request: Request, code: str, message: Any, **extra: Any) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": str(request.url.path),
            "method": request.method,
            **extra,
        }
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent error format"""
    logger.warning(
        f"HTTP {exc.status_code} error on {request.method} {request.url.path}: {exc.detail}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, f"HTTP_{exc.status_code}", exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors"""
    errors = exc.errors()
    logger.warning(f"Validation error on {request.method} {request.url.path}: {len(errors)} errors")

    details = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]
    return JSONResponse(
        status_code=422,
        content=_error_body(
            request,
            "VALIDATION_ERROR",
            "Request validation failed",
            details={"error_count": len(errors), "errors": details},
        ),
    )


async def status_board_exception_handler(request: Request, exc: StatusBoardException) -> JSONResponse:
    """Handle custom status board exceptions"""
    status_code = STATUS_CODE_MAP.get(exc.error_code, 500)
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Status board error on {request.method} {request.url.path}: "
        f"{exc.error_code} - {exc.message}",
        extra={"error_code": exc.error_code, "operation": exc.operation},
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                **exc.to_dict(),
                "code": exc.error_code,
                "path": str(request.url.path),
                "method": request.method,
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle anything the route handlers did not"""
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "INTERNAL_ERROR", "Internal server error"),
    )


def create_app(settings: ApplicationSettings | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings

    Returns:
        FastAPI: The application; the pipeline is built when its lifespan starts
    """
    settings = settings or get_settings()
    setup_logging(level=settings.logging.log_level, log_format=settings.logging.log_format)

    app = FastAPI(
        title="Status Board API",
        description="Live infrastructure status dashboard with remote host metrics",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings

    # Add rate limiter state to app
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StatusBoardException, status_board_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    # Custom middleware for request timing and logging
    @app.middleware("http")
    async def timing_middleware(request: Request, call_next: Any) -> Response:
        """Add request timing and basic logging"""
        start_time = time.time()
        try:
            response = cast(Response, await call_next(request))
        except Exception as e:
            logger.error(
                "request.error",
                exc_info=True,
                extra={
                    "method": request.method,
                    "path": str(request.url.path),
                    "duration_ms": int((time.time() - start_time) * 1000),
                    "exception_type": type(e).__name__,
                },
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        logger.info(
            "request.end",
            extra={
                "method": request.method,
                "path": str(request.url.path),
                "status_code": response.status_code,
                "duration_ms": int(process_time * 1000),
            },
        )
        return response

    # Correlation ID middleware (request-scoped request_id); added last so it runs first
    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        set_request_id(request_id)
        try:
            response = cast(Response, await call_next(request))
        finally:
            # Ensure context var cleared for next request in same worker
            set_request_id(None)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health")
    @limiter.limit("30/minute")
    async def health_check(request: Request) -> dict[str, Any]:
        """Application health check with connection and polling state"""
        integration: RemoteIntegration | None = getattr(request.app.state, "integration", None)
        polling_service: PollingService | None = getattr(request.app.state, "polling_service", None)
        hub: BroadcastHub | None = getattr(request.app.state, "hub", None)
        return {
            "status": "healthy",
            "version": VERSION,
            "environment": settings.environment,
            "connection": integration.get_connection_status().model_dump() if integration else None,
            "polling": polling_service.get_status() if polling_service else None,
            "websocket_connections": hub.get_connection_count() if hub else 0,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # Include API routers with /api prefix
    app.include_router(api_router, prefix="/api")
    app.include_router(websocket_router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn"""
    settings = get_settings()
    uvicorn.run(
        "statusboard.main:create_app",
        factory=True,
        host=settings.api.api_host,
        port=settings.api.api_port,
        reload=settings.debug,
        log_level=settings.api.api_log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    run()
