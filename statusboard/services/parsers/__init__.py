"""
Command Output Parsers

This module provides the probe definitions and the parsers for the diagnostic
commands run on the monitored host.
"""

from .base_parser import CommandRunner, Probe, ProbeChain
from .metrics_parser import CpuUsage, MemoryInfo
from .process_parser import parse_docker_ps, parse_ps_aux, parse_ps_eo
from .service_parser import (
    COMMON_PORTS,
    DiscoveredService,
    DiscoverySource,
    parse_docker_services,
    parse_port_scan,
    parse_systemctl_units,
)

__all__ = [
    "CommandRunner",
    "Probe",
    "ProbeChain",
    "CpuUsage",
    "MemoryInfo",
    "parse_docker_ps",
    "parse_ps_aux",
    "parse_ps_eo",
    "COMMON_PORTS",
    "DiscoveredService",
    "DiscoverySource",
    "parse_docker_services",
    "parse_port_scan",
    "parse_systemctl_units",
]
