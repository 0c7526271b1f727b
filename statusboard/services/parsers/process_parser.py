"""
Process Listing Parsers

Parses ``ps`` and ``docker ps`` output into ProcessRecord lists.
Malformed lines are skipped; a listing with no usable line is a parse error.
"""

import logging

from statusboard.core.exceptions import ProbeParseError
from statusboard.schemas.process import ProcessOrigin, ProcessRecord
from statusboard.services.parsers.base_parser import require_output

logger = logging.getLogger(__name__)

PS_EO_COMMAND = "ps -eo pid,user,nlwp,pcpu,pmem,args --sort=-pcpu --no-headers"
PS_AUX_COMMAND = "ps aux --sort=-%cpu"
DOCKER_AVAILABLE_COMMAND = "command -v docker"
DOCKER_PS_COMMAND = "docker ps --no-trunc --format '{{.ID}}\\t{{.Names}}\\t{{.Image}}\\t{{.Command}}'"

# Keeps synthesized container pids inside the usual 32-bit pid range
_CONTAINER_PID_HEX_DIGITS = 7


def process_name(command: str) -> str:
    """Short display name for a command line.

    Kernel threads such as ``[kworker/0:1]`` keep their bracketed name,
    everything else is reduced to the executable's basename.
    """
    command = command.strip()
    if command.startswith("[") and command.endswith("]"):
        return command[1:-1]
    executable = command.split()[0] if command else ""
    return executable.rsplit("/", 1)[-1] or executable


def _percent(value: str) -> str:
    return f"{float(value.replace(',', '.')):.1f}%"


def parse_ps_eo(output: str) -> list[ProcessRecord]:
    """Parse ``ps -eo pid,user,nlwp,pcpu,pmem,args``"""
    text = require_output(output, "ps_eo")
    records: list[ProcessRecord] = []
    for line in text.splitlines():
        fields = line.split(None, 5)
        if len(fields) < 6:
            continue
        pid, user, nlwp, pcpu, pmem, args = fields
        try:
            records.append(
                ProcessRecord(
                    pid=int(pid),
                    name=process_name(args),
                    command=args.strip(),
                    threads=max(int(nlwp), 1),
                    user=user,
                    memory=_percent(pmem),
                    cpu_usage_percent=float(pcpu.replace(",", ".")),
                )
            )
        except ValueError:
            logger.debug(f"Skipping malformed ps line: {line!r}")
    if not records:
        raise ProbeParseError("No process lines", probe="ps_eo", output=text)
    return records


def parse_ps_aux(output: str) -> list[ProcessRecord]:
    """Parse ``ps aux``; thread counts are not available and default to 1"""
    text = require_output(output, "ps_aux")
    records: list[ProcessRecord] = []
    for line in text.splitlines():
        fields = line.split(None, 10)
        if len(fields) < 11 or fields[0] == "USER":
            continue
        user, pid, pcpu, pmem = fields[0], fields[1], fields[2], fields[3]
        args = fields[10]
        try:
            records.append(
                ProcessRecord(
                    pid=int(pid),
                    name=process_name(args),
                    command=args.strip(),
                    user=user,
                    memory=_percent(pmem),
                    cpu_usage_percent=float(pcpu.replace(",", ".")),
                )
            )
        except ValueError:
            logger.debug(f"Skipping malformed ps aux line: {line!r}")
    if not records:
        raise ProbeParseError("No process lines", probe="ps_aux", output=text)
    return records


def container_pid(container_id: str) -> int:
    """Synthetic pid derived from the leading hex digits of a container id"""
    try:
        return int(container_id[:_CONTAINER_PID_HEX_DIGITS], 16)
    except ValueError:
        return 0


def parse_docker_ps(output: str) -> list[ProcessRecord]:
    """
    Parse tab-separated ``docker ps`` rows.

    Per-container CPU and memory are not sampled and stay at zero.
    An empty listing is valid and returns no records.
    """
    records: list[ProcessRecord] = []
    for line in (output or "").splitlines():
        fields = line.strip().split("\t")
        if len(fields) < 3 or not fields[0]:
            continue
        container_id, name, image = fields[0], fields[1], fields[2]
        command = fields[3].strip('"') if len(fields) > 3 else ""
        records.append(
            ProcessRecord(
                pid=container_pid(container_id),
                name=name,
                command=f"{image} {command}".strip(),
                user="docker",
                origin=ProcessOrigin.CONTAINER,
            )
        )
    return records
