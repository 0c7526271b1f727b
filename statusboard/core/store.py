"""
In-memory persistence for snapshots, services, incidents and processes.

Records are immutable pydantic models. Updates build a new record and swap
it in under a lock, so readers always see a whole record. Snapshot history is
a bounded ring: the oldest entry is evicted once capacity is reached.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
import logging
from typing import Any

from statusboard.core.exceptions import IncidentNotFoundError, ServiceNotFoundError
from statusboard.schemas.incident import (
    IncidentCreate,
    IncidentRecord,
    IncidentStatus,
    IncidentUpdate,
)
from statusboard.schemas.metrics import MetricsSnapshot
from statusboard.schemas.process import ProcessRecord
from statusboard.schemas.service import ServiceCreate, ServiceRecord, ServiceUpdate

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 1000


class MemoryMetricsStore:
    """Async in-memory store used by the scheduler jobs and the admin API"""

    def __init__(self, history_capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        self.history_capacity = history_capacity
        self._snapshots: deque[MetricsSnapshot] = deque(maxlen=history_capacity)
        self._services: dict[str, ServiceRecord] = {}
        self._incidents: dict[str, IncidentRecord] = {}
        self._processes: tuple[ProcessRecord, ...] = ()
        self._lock = asyncio.Lock()

    # Metrics

    async def get_latest_snapshot(self) -> MetricsSnapshot | None:
        return self._snapshots[-1] if self._snapshots else None

    async def append_snapshot(self, snapshot: MetricsSnapshot) -> MetricsSnapshot:
        self._snapshots.append(snapshot)
        return snapshot

    async def get_snapshot_history(self, limit: int | None = None) -> list[MetricsSnapshot]:
        """Return retained snapshots, oldest first"""
        history = list(self._snapshots)
        if limit is not None:
            history = history[-limit:] if limit > 0 else []
        return history

    # Services

    async def list_services(self) -> list[ServiceRecord]:
        return list(self._services.values())

    async def get_service(self, service_id: str) -> ServiceRecord:
        service = self._services.get(service_id)
        if service is None:
            raise ServiceNotFoundError(service_id)
        return service

    async def get_service_by_name(self, name: str) -> ServiceRecord | None:
        for service in self._services.values():
            if service.name == name:
                return service
        return None

    async def create_service(self, data: ServiceCreate) -> ServiceRecord:
        service = ServiceRecord(**data.model_dump())
        async with self._lock:
            self._services[service.id] = service
        return service

    async def upsert_service_if_absent(self, data: ServiceCreate) -> tuple[ServiceRecord, bool]:
        """Insert unless a service with the same name exists.

        Returns the stored record and whether it was created. Existing
        records are returned untouched.
        """
        async with self._lock:
            for service in self._services.values():
                if service.name == data.name:
                    return service, False
            service = ServiceRecord(**data.model_dump())
            self._services[service.id] = service
        return service, True

    async def update_service(
        self, service_id: str, update: ServiceUpdate | dict[str, Any]
    ) -> ServiceRecord:
        changes = _changes(update, ServiceUpdate)
        async with self._lock:
            current = self._services.get(service_id)
            if current is None:
                raise ServiceNotFoundError(service_id)
            updated = current.model_copy(
                update={**changes, "last_checked_at": datetime.now(timezone.utc)}
            )
            self._services[service_id] = updated
        return updated

    # Incidents

    async def list_incidents(self) -> list[IncidentRecord]:
        """All incidents, newest first"""
        return sorted(self._incidents.values(), key=lambda i: i.created_at, reverse=True)

    async def list_active_incidents(self) -> list[IncidentRecord]:
        return [i for i in await self.list_incidents() if i.status != IncidentStatus.RESOLVED]

    async def get_incident(self, incident_id: str) -> IncidentRecord:
        incident = self._incidents.get(incident_id)
        if incident is None:
            raise IncidentNotFoundError(incident_id)
        return incident

    async def create_incident(self, data: IncidentCreate) -> IncidentRecord:
        now = datetime.now(timezone.utc)
        incident = IncidentRecord(
            **data.model_dump(),
            created_at=now,
            updated_at=now,
            resolved_at=now if data.status == IncidentStatus.RESOLVED else None,
        )
        async with self._lock:
            self._incidents[incident.id] = incident
        return incident

    async def update_incident(
        self, incident_id: str, update: IncidentUpdate | dict[str, Any]
    ) -> IncidentRecord:
        changes = _changes(update, IncidentUpdate)
        # resolved_at is owned by the store
        changes.pop("resolved_at", None)
        async with self._lock:
            current = self._incidents.get(incident_id)
            if current is None:
                raise IncidentNotFoundError(incident_id)
            now = datetime.now(timezone.utc)
            changes["updated_at"] = now
            if changes.get("status") == IncidentStatus.RESOLVED and current.resolved_at is None:
                changes["resolved_at"] = now
            updated = current.model_copy(update=changes)
            self._incidents[incident_id] = updated
        return updated

    # Processes

    async def replace_process_set(self, processes: list[ProcessRecord]) -> list[ProcessRecord]:
        self._processes = tuple(processes)
        return list(self._processes)

    async def list_processes(self) -> list[ProcessRecord]:
        """The current process set in acquisition order"""
        return list(self._processes)

    async def top_processes(self, limit: int) -> list[ProcessRecord]:
        """Processes ordered by memory usage, highest first"""
        ordered = sorted(self._processes, key=lambda p: p.memory_percent, reverse=True)
        return ordered[: max(limit, 0)]


def _changes(update: Any, model: type[Any]) -> dict[str, Any]:
    if isinstance(update, dict):
        update = model.model_validate(update)
    return update.model_dump(exclude_unset=True, exclude_none=True)
