"""Logging helpers for dbhooks."""

from .config import configure_logging, resolve_level
from .custom_levels import TRACE, add_custom_log_level, get_custom_levels, is_custom_level

__all__ = [
    "configure_logging",
    "resolve_level",
    "TRACE",
    "add_custom_log_level",
    "get_custom_levels",
    "is_custom_level",
]
