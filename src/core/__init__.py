"""
Core Module - Shared infrastructure.

Components:
- errors: Exception hierarchy (SchedulerError, CatalogError)
- log_config: loguru sink configuration
- clock: millisecond timestamps
"""

from src.core.clock import MS_PER_HOUR, now_ms
from src.core.errors import CatalogError, SchedulerError
from src.core.log_config import configure_logging

__all__ = [
    "MS_PER_HOUR",
    "CatalogError",
    "SchedulerError",
    "configure_logging",
    "now_ms",
]
