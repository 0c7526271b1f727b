"""
System Metrics Parsers

Pure parse functions for the diagnostic commands used to build a metrics
snapshot. Each function takes raw stdout and returns a value or raises
ProbeParseError; none of them touch the network.
"""

import re
from dataclasses import dataclass, field

from statusboard.core.exceptions import ProbeParseError
from statusboard.services.parsers.base_parser import parse_float, parse_int, require_output

# Commands
PROC_STAT_WINDOW_COMMAND = (
    "grep '^cpu' /proc/stat && sleep 1 && echo --- && grep '^cpu' /proc/stat"
)
TOP_COMMAND = "top -bn1 | head -5"
CPUINFO_MHZ_COMMAND = "grep -m1 'cpu MHz' /proc/cpuinfo"
SCALING_FREQ_COMMAND = "cat /sys/devices/system/cpu/cpu0/cpufreq/scaling_cur_freq"
NPROC_COMMAND = "nproc"
PROCESSOR_COUNT_COMMAND = "grep -c ^processor /proc/cpuinfo"
FREE_GB_COMMAND = "free -g"
FREE_MB_COMMAND = "free -m"
MEMINFO_COMMAND = "cat /proc/meminfo"
DEFAULT_ROUTE_COMMAND = "ip route show default"
PROC_NET_ROUTE_COMMAND = "cat /proc/net/route"
NET_DEV_COMMAND = "cat /proc/net/dev"
LOADAVG_COMMAND = "cat /proc/loadavg"
UPTIME_COMMAND = "uptime"
PROC_UPTIME_COMMAND = "cat /proc/uptime"

_TOP_IDLE = re.compile(r"(\d+(?:[.,]\d+)?)\s*%?\s*id\b")
_LOAD_AVERAGE = re.compile(r"load averages?:\s*(.*)$", re.IGNORECASE | re.MULTILINE)
_DECIMAL = re.compile(r"\d+(?:[.,]\d+)?")

KB_PER_GB = 1024 * 1024
# free -g rounds down to whole GB; smaller hosts are read in MB instead
FREE_GB_MIN_TOTAL = 4


@dataclass(frozen=True)
class CpuUsage:
    """Aggregate usage plus real per-core figures when they were measured"""

    aggregate: float
    per_core: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class MemoryInfo:
    """Raw memory figures in GB, before normalization"""

    total_gb: float
    used_gb: float
    cache_gb: float
    available_gb: float | None = None


# CPU


def _cpu_counters(block: str) -> dict[str, tuple[int, int]]:
    """Map cpu label to (total jiffies, idle jiffies) for one /proc/stat read"""
    counters: dict[str, tuple[int, int]] = {}
    for line in block.splitlines():
        parts = line.split()
        if not parts or not parts[0].startswith("cpu"):
            continue
        try:
            # user nice system idle iowait irq softirq steal; guest time is already in user
            values = [int(v) for v in parts[1:9]]
        except ValueError:
            continue
        if len(values) < 4:
            continue
        idle = values[3] + (values[4] if len(values) > 4 else 0)
        counters[parts[0]] = (sum(values), idle)
    return counters


def _usage_between(before: tuple[int, int], after: tuple[int, int]) -> float:
    total = after[0] - before[0]
    idle = after[1] - before[1]
    if total <= 0:
        return 0.0
    usage = (total - idle) / total * 100
    return round(min(max(usage, 0.0), 100.0), 1)


def parse_proc_stat_window(output: str) -> CpuUsage:
    """
    Parse two /proc/stat reads separated by a ``---`` line.

    Usage is the share of non-idle jiffies over the window, for the
    aggregate ``cpu`` line and every ``cpuN`` line present in both reads.
    """
    text = require_output(output, "proc_stat")
    blocks = text.split("---")
    if len(blocks) != 2:
        raise ProbeParseError("Expected two /proc/stat samples", probe="proc_stat", output=text)

    before, after = _cpu_counters(blocks[0]), _cpu_counters(blocks[1])
    if "cpu" not in before or "cpu" not in after:
        raise ProbeParseError("No aggregate cpu line", probe="proc_stat", output=text)

    core_labels = sorted(
        (label for label in after if label[3:].isdigit() and label in before),
        key=lambda label: int(label[3:]),
    )
    return CpuUsage(
        aggregate=_usage_between(before["cpu"], after["cpu"]),
        per_core=[_usage_between(before[label], after[label]) for label in core_labels],
    )


def parse_top_cpu(output: str) -> CpuUsage:
    """Aggregate usage from the idle figure of top's ``Cpu(s)`` line"""
    text = require_output(output, "top")
    for line in text.splitlines():
        if "Cpu" not in line:
            continue
        match = _TOP_IDLE.search(line)
        if match:
            idle = parse_float(match.group(1), "top")
            return CpuUsage(aggregate=round(min(max(100.0 - idle, 0.0), 100.0), 1))
    raise ProbeParseError("No Cpu(s) idle figure in top output", probe="top", output=text)


def parse_cpuinfo_mhz(output: str) -> float:
    """``cpu MHz : 2400.000`` to GHz"""
    text = require_output(output, "cpuinfo")
    _, _, value = text.splitlines()[0].partition(":")
    mhz = parse_float(value, "cpuinfo")
    if mhz <= 0:
        raise ProbeParseError("Non-positive cpu MHz", probe="cpuinfo", output=text)
    return round(mhz / 1000, 2)


def parse_scaling_freq(output: str) -> float:
    """scaling_cur_freq is reported in kHz"""
    khz = parse_int(require_output(output, "scaling_cur_freq"), "scaling_cur_freq")
    if khz <= 0:
        raise ProbeParseError("Non-positive frequency", probe="scaling_cur_freq", output=output)
    return round(khz / 1_000_000, 2)


def parse_core_count(output: str) -> int:
    count = parse_int(require_output(output, "core_count"), "core_count")
    if count < 1:
        raise ProbeParseError("Core count below 1", probe="core_count", output=output)
    return count


# Memory


def _parse_free(output: str, divisor: float, probe: str) -> MemoryInfo:
    text = require_output(output, probe)
    header: list[str] | None = None
    values: list[str] | None = None
    for line in text.splitlines():
        if line.startswith("Mem:"):
            values = line.split()[1:]
        elif header is None and "total" in line:
            header = line.split()
    if values is None:
        raise ProbeParseError("No Mem: line", probe=probe, output=text)

    columns = dict(zip(header or ["total", "used", "free", "shared", "buff/cache", "available"], values))
    try:
        total = float(columns["total"]) / divisor
        used = float(columns["used"]) / divisor
        if "buff/cache" in columns:
            cache = float(columns["buff/cache"]) / divisor
        else:
            # procps before 3.3.10 reports buffers and cached separately
            cache = (float(columns.get("buffers", 0)) + float(columns.get("cached", 0))) / divisor
        available = float(columns["available"]) / divisor if "available" in columns else None
    except (KeyError, ValueError) as e:
        raise ProbeParseError(f"Malformed free output: {e}", probe=probe, output=text) from e

    if total <= 0:
        raise ProbeParseError("free reported zero memory", probe=probe, output=text)
    return MemoryInfo(total_gb=total, used_gb=used, cache_gb=cache, available_gb=available)


def parse_free_gb(output: str) -> MemoryInfo:
    """
    Whole-GB figures from ``free -g``.

    Rejected as too coarse on hosts below FREE_GB_MIN_TOTAL or when used or
    cache rounds down to zero, so the chain moves on to ``free -m``.
    """
    info = _parse_free(output, 1, "free_gb")
    if info.total_gb < FREE_GB_MIN_TOTAL or info.used_gb == 0 or info.cache_gb == 0:
        raise ProbeParseError("free -g figures are too coarse", probe="free_gb", output=output)
    return info


def parse_free_mb(output: str) -> MemoryInfo:
    return _parse_free(output, 1024, "free_mb")


def parse_meminfo(output: str) -> MemoryInfo:
    """Derive the ``free`` figures from /proc/meminfo (values in kB)"""
    text = require_output(output, "meminfo")
    info: dict[str, int] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        digits = value.split()
        if digits and digits[0].isdigit():
            info[key.strip()] = int(digits[0])

    total = info.get("MemTotal", 0)
    if total <= 0:
        raise ProbeParseError("MemTotal missing", probe="meminfo", output=text)

    cache = info.get("Buffers", 0) + info.get("Cached", 0) + info.get("SReclaimable", 0)
    used = max(total - info.get("MemFree", 0) - cache, 0)
    available = info.get("MemAvailable")
    return MemoryInfo(
        total_gb=total / KB_PER_GB,
        used_gb=used / KB_PER_GB,
        cache_gb=cache / KB_PER_GB,
        available_gb=available / KB_PER_GB if available is not None else None,
    )


# Network


def parse_ip_route_default(output: str) -> str:
    """``default via 10.0.0.1 dev eth0 ...`` to ``eth0``"""
    text = require_output(output, "ip_route")
    for line in text.splitlines():
        tokens = line.split()
        if "dev" in tokens[:-1]:
            return tokens[tokens.index("dev") + 1]
    raise ProbeParseError("No dev in default route", probe="ip_route", output=text)


def parse_proc_net_route(output: str) -> str:
    text = require_output(output, "proc_net_route")
    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) >= 2 and fields[1] == "00000000":
            return fields[0]
    raise ProbeParseError("No default route entry", probe="proc_net_route", output=text)


def parse_net_dev(output: str) -> dict[str, tuple[int, int]]:
    """Map interface name to cumulative (rx bytes, tx bytes)"""
    text = require_output(output, "net_dev")
    counters: dict[str, tuple[int, int]] = {}
    for line in text.splitlines():
        name, sep, rest = line.partition(":")
        if not sep or "|" in line:
            continue
        fields = rest.split()
        if len(fields) < 9:
            continue
        try:
            counters[name.strip()] = (int(fields[0]), int(fields[8]))
        except ValueError:
            continue
    if not counters:
        raise ProbeParseError("No interface counters", probe="net_dev", output=text)
    return counters


# Load and uptime


def parse_loadavg(output: str) -> tuple[float, float, float]:
    fields = require_output(output, "loadavg").split()
    if len(fields) < 3:
        raise ProbeParseError("Expected three load figures", probe="loadavg", output=output)
    return (
        parse_float(fields[0], "loadavg"),
        parse_float(fields[1], "loadavg"),
        parse_float(fields[2], "loadavg"),
    )


def parse_uptime_load(output: str) -> tuple[float, float, float]:
    """Load figures from the ``load average:`` tail of ``uptime``"""
    text = require_output(output, "uptime")
    match = _LOAD_AVERAGE.search(text)
    figures = _DECIMAL.findall(match.group(1)) if match else []
    if len(figures) < 3:
        raise ProbeParseError("No load average in uptime output", probe="uptime", output=text)
    return (
        parse_float(figures[0], "uptime"),
        parse_float(figures[1], "uptime"),
        parse_float(figures[2], "uptime"),
    )


def parse_proc_uptime(output: str) -> int:
    seconds = parse_float(require_output(output, "proc_uptime").split()[0], "proc_uptime")
    return max(int(seconds), 0)
