"""
Admin API Endpoints

Operator actions behind the bearer API key: remote host status and process
listing, service start/stop/restart, and service and incident maintenance.
Incident changes are pushed to live clients immediately.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request

from statusboard.api.auth import require_admin
from statusboard.api.common import (
    ACTION_LIMIT,
    get_integration,
    get_monitor,
    get_store,
    limiter,
)
from statusboard.core.store import MemoryMetricsStore
from statusboard.schemas.common import ConnectionStatus, RemoteProcessesResponse
from statusboard.schemas.incident import IncidentCreate, IncidentRecord, IncidentUpdate
from statusboard.schemas.service import (
    ServiceAction,
    ServiceActionResult,
    ServiceCreate,
    ServiceRecord,
    ServiceUpdate,
)
from statusboard.services.remote_integration import RemoteIntegration
from statusboard.services.system_monitor import SystemMonitor
from statusboard.utils.exception_handling import handle_exceptions

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/vps/status", response_model=ConnectionStatus)
async def get_vps_status(
    integration: RemoteIntegration = Depends(get_integration),
) -> ConnectionStatus:
    return integration.get_connection_status()


@router.get("/vps/processes", response_model=RemoteProcessesResponse)
@handle_exceptions(message="Failed to fetch remote processes")
async def get_vps_processes(
    limit: int = Query(100, ge=1, le=1000, description="Processes to return"),
    store: MemoryMetricsStore = Depends(get_store),
    integration: RemoteIntegration = Depends(get_integration),
) -> RemoteProcessesResponse:
    """
    Fresh process listing from the remote host, CPU usage descending.

    Falls back to the last stored process set when the host is not
    connected.
    """
    processes = await integration.sample_processes()
    if processes is None:
        processes = await store.list_processes()
    return RemoteProcessesResponse(
        processes=processes[:limit],
        services=await store.list_services(),
        total_processes=len(processes),
        connection_active=integration.is_connection_active(),
    )


@router.post("/services/{name}/{action}", response_model=ServiceActionResult)
@limiter.limit(ACTION_LIMIT)
@handle_exceptions(message="Service management failed")
async def manage_service(
    request: Request,
    name: str = Path(..., description="systemd unit name"),
    action: str = Path(..., description="start, stop or restart"),
    integration: RemoteIntegration = Depends(get_integration),
) -> ServiceActionResult:
    try:
        service_action = ServiceAction(action)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid action: {action}") from e

    result = await integration.manage_service(name, service_action)
    logger.info(
        "admin.service_action",
        extra={"service": name, "action": service_action.value, "success": result.success},
    )
    return result


@router.post("/services", response_model=ServiceRecord, status_code=201)
@handle_exceptions(message="Failed to create service")
async def create_service(
    service_data: ServiceCreate,
    store: MemoryMetricsStore = Depends(get_store),
) -> ServiceRecord:
    return await store.create_service(service_data)


@router.patch("/services/{service_id}", response_model=ServiceRecord)
@handle_exceptions(message="Failed to update service")
async def update_service(
    service_update: ServiceUpdate,
    service_id: str = Path(..., description="Service ID"),
    store: MemoryMetricsStore = Depends(get_store),
) -> ServiceRecord:
    return await store.update_service(service_id, service_update)


@router.post("/incidents", response_model=IncidentRecord, status_code=201)
@handle_exceptions(message="Failed to create incident")
async def create_incident(
    incident_data: IncidentCreate,
    store: MemoryMetricsStore = Depends(get_store),
    monitor: SystemMonitor = Depends(get_monitor),
) -> IncidentRecord:
    incident = await store.create_incident(incident_data)
    await _push_incidents(monitor)
    return incident


@router.patch("/incidents/{incident_id}", response_model=IncidentRecord)
@handle_exceptions(message="Failed to update incident")
async def update_incident(
    incident_update: IncidentUpdate,
    incident_id: str = Path(..., description="Incident ID"),
    store: MemoryMetricsStore = Depends(get_store),
    monitor: SystemMonitor = Depends(get_monitor),
) -> IncidentRecord:
    incident = await store.update_incident(incident_id, incident_update)
    await _push_incidents(monitor)
    return incident


async def _push_incidents(monitor: SystemMonitor) -> None:
    delivered = await monitor.publish_incidents()
    logger.debug(f"Incident update delivered to {delivered} clients")
