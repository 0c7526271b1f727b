"""
Service layer for remote process listing.
"""

import logging

from statusboard.core.exceptions import StatusBoardException
from statusboard.schemas.process import ProcessRecord
from statusboard.services.parsers.base_parser import CommandRunner, Probe, ProbeChain
from statusboard.services.parsers.process_parser import (
    DOCKER_AVAILABLE_COMMAND,
    DOCKER_PS_COMMAND,
    PS_AUX_COMMAND,
    PS_EO_COMMAND,
    parse_docker_ps,
    parse_ps_aux,
    parse_ps_eo,
)

logger = logging.getLogger(__name__)

DEFAULT_PROCESS_LIMIT = 50


class ProcessSampler:
    """Lists host processes, optionally followed by running containers"""

    def __init__(
        self,
        session: CommandRunner,
        limit: int = DEFAULT_PROCESS_LIMIT,
        include_containers: bool = True,
    ) -> None:
        self.session = session
        self.limit = limit
        self.include_containers = include_containers
        self.process_chain: ProbeChain[list[ProcessRecord]] = ProbeChain(
            "processes",
            [
                Probe("ps_eo", PS_EO_COMMAND, parse_ps_eo),
                Probe("ps_aux", PS_AUX_COMMAND, parse_ps_aux),
            ],
            default=list,
        )

    async def sample(self) -> list[ProcessRecord]:
        """
        Return host processes ordered by CPU usage (highest first), then
        container workloads, at most ``limit`` records in total. Never raises;
        returns ``[]`` when no listing could be obtained.
        """
        try:
            processes = await self.process_chain.run(self.session)
            processes = sorted(processes, key=lambda p: p.cpu_usage_percent, reverse=True)
            if self.include_containers:
                processes.extend(await self._containers())
            return processes[: self.limit]
        except Exception as e:  # noqa: BLE001 - sampling failures must not reach the scheduler
            logger.error(f"Unexpected error while listing processes: {e}", exc_info=True)
            return []

    async def _containers(self) -> list[ProcessRecord]:
        try:
            if not (await self.session.execute(DOCKER_AVAILABLE_COMMAND)).strip():
                return []
            return parse_docker_ps(await self.session.execute(DOCKER_PS_COMMAND))
        except StatusBoardException as e:
            logger.debug(f"Container listing unavailable: {e.message}")
            return []
