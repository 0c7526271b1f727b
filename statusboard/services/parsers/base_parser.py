"""
Base Probe Definitions

A probe is one shell command plus a pure parse function. Probes for the same
field are grouped into an ordered chain: the first probe whose command runs
and whose output parses wins, otherwise the chain's default is returned.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Protocol, TypeVar

from statusboard.core.exceptions import ProbeParseError, StatusBoardException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CommandRunner(Protocol):
    """Anything that can run one remote command and return stdout"""

    async def execute(self, command: str, timeout: float | None = None) -> str: ...


@dataclass(frozen=True)
class Probe(Generic[T]):
    """Definition of a diagnostic command with its parsing logic"""

    name: str
    command: str
    parser: Callable[[str], T]
    timeout: float = 10


class ProbeChain(Generic[T]):
    """Ordered probes for one field, with a default when all of them fail"""

    def __init__(self, name: str, probes: list[Probe[T]], default: T | Callable[[], T]):
        self.name = name
        self.probes = probes
        self._default = default

    @property
    def default(self) -> T:
        return self._default() if callable(self._default) else self._default

    async def run(self, runner: CommandRunner) -> T:
        """
        Run probes in order until one succeeds.

        Command and parse failures are logged as warnings and never raised.

        Args:
            runner: Session used to execute the probe commands

        Returns:
            The first successfully parsed value, or the default
        """
        for probe in self.probes:
            try:
                output = await runner.execute(probe.command, timeout=probe.timeout)
                return probe.parser(output)
            except StatusBoardException as e:
                logger.warning(
                    f"Probe {self.name}/{probe.name} failed: {e.message}",
                    extra={"error_code": e.error_code, "error_type": e.details.get("error_type")},
                )

        logger.warning(f"All probes for {self.name} failed, using default")
        return self.default


def parse_float(value: str, probe: str) -> float:
    """Parse a number that may use a comma as decimal separator"""
    try:
        return float(value.strip().replace(",", "."))
    except (ValueError, AttributeError) as e:
        raise ProbeParseError(f"Not a number: {value!r}", probe=probe, output=str(value)) from e


def parse_int(value: str, probe: str) -> int:
    try:
        return int(value.strip())
    except (ValueError, AttributeError) as e:
        raise ProbeParseError(f"Not an integer: {value!r}", probe=probe, output=str(value)) from e


def require_output(output: str, probe: str) -> str:
    """Return stripped output, raising ProbeParseError when it is empty"""
    text = output.strip() if output else ""
    if not text:
        raise ProbeParseError("Command produced no output", probe=probe, output=output or "")
    return text

