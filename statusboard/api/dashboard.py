"""
Public Dashboard API Endpoints

Read-only views of what the monitoring jobs have stored: services,
incidents, the latest metrics snapshot and its history, the top processes
and the state of the SSH link.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from statusboard.api.common import READ_LIMIT, get_integration, get_store, limiter
from statusboard.core.store import MemoryMetricsStore
from statusboard.schemas.common import ConnectionStatus
from statusboard.schemas.incident import IncidentRecord
from statusboard.schemas.metrics import MetricsSnapshot
from statusboard.schemas.process import ProcessRecord
from statusboard.schemas.service import ServiceRecord
from statusboard.services.remote_integration import RemoteIntegration
from statusboard.utils.exception_handling import handle_exceptions

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/services", response_model=list[ServiceRecord])
@limiter.limit(READ_LIMIT)
@handle_exceptions(message="Failed to list services")
async def list_services(
    request: Request,
    store: MemoryMetricsStore = Depends(get_store),
) -> list[ServiceRecord]:
    return await store.list_services()


@router.get("/incidents", response_model=list[IncidentRecord])
@limiter.limit(READ_LIMIT)
@handle_exceptions(message="Failed to list incidents")
async def list_incidents(
    request: Request,
    active_only: bool = Query(False, description="Only incidents that are not resolved"),
    store: MemoryMetricsStore = Depends(get_store),
) -> list[IncidentRecord]:
    """All incidents, newest first"""
    if active_only:
        return await store.list_active_incidents()
    return await store.list_incidents()


@router.get("/metrics", response_model=MetricsSnapshot)
@limiter.limit(READ_LIMIT)
@handle_exceptions(message="Failed to get metrics")
async def get_metrics(
    request: Request,
    store: MemoryMetricsStore = Depends(get_store),
) -> MetricsSnapshot:
    snapshot = await store.get_latest_snapshot()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No metrics collected yet")
    return snapshot


@router.get("/metrics/history", response_model=list[MetricsSnapshot])
@limiter.limit(READ_LIMIT)
@handle_exceptions(message="Failed to get metrics history")
async def get_metrics_history(
    request: Request,
    limit: int = Query(60, ge=1, le=10000, description="Most recent snapshots to return"),
    store: MemoryMetricsStore = Depends(get_store),
) -> list[MetricsSnapshot]:
    """Retained snapshots, oldest first"""
    return await store.get_snapshot_history(limit)


@router.get("/processes", response_model=list[ProcessRecord])
@limiter.limit(READ_LIMIT)
@handle_exceptions(message="Failed to list processes")
async def list_processes(
    request: Request,
    limit: int = Query(20, ge=1, le=500, description="Processes to return, by memory usage"),
    store: MemoryMetricsStore = Depends(get_store),
) -> list[ProcessRecord]:
    return await store.top_processes(limit)


@router.get("/connection", response_model=ConnectionStatus)
@limiter.limit(READ_LIMIT)
async def get_connection(
    request: Request,
    integration: RemoteIntegration = Depends(get_integration),
) -> ConnectionStatus:
    return integration.get_connection_status()
