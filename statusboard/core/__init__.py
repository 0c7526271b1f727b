"""
Core modules: configuration, logging, exceptions and the in-memory store.
"""

from .config import ApplicationSettings, get_settings
from .store import MemoryMetricsStore

__all__ = [
    "ApplicationSettings",
    "get_settings",
    "MemoryMetricsStore",
]
