"""Custom log level utilities for dbhooks logging.

The engine logs lock bookkeeping and every executed behavior at a ``TRACE``
level below ``DEBUG`` so that production ``DEBUG`` output stays readable.
"""

import logging
from typing import Any, Optional, Set

# Registry of custom log levels
_custom_levels: Set[str] = set()


def add_custom_log_level(
    level_name: str, level_number: int, method_name: Optional[str] = None
) -> int:
    """Add a custom log level to Python's logging system.

    Registers the level name with the logging module and adds a logging
    method of the same (lower-cased) name to the Logger class.

    Args:
        level_name: Name of the log level (e.g., "TRACE", "AUDIT")
        level_number: Numeric value for the level (DEBUG is 10, INFO is 20)
        method_name: Optional method name to add to Logger class.
            If not provided, uses level_name.lower()

    Returns:
        The level number that was registered

    Raises:
        ValueError: If the name is already registered with another number
    """
    if method_name is None:
        method_name = level_name.lower()

    existing_level = logging.getLevelName(level_name)
    if existing_level != f"Level {level_name}":
        if existing_level == level_number:
            _custom_levels.add(level_name)
            return level_number
        raise ValueError(
            f"Log level '{level_name}' already exists with number {existing_level}"
        )

    logging.addLevelName(level_number, level_name)

    def log_for_level(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a message at the custom level."""
        if self.isEnabledFor(level_number):
            self._log(level_number, message, args, **kwargs)

    setattr(logging.getLoggerClass(), method_name, log_for_level)

    _custom_levels.add(level_name)
    return level_number


def get_custom_levels() -> Set[str]:
    """Get all registered custom log levels."""
    return _custom_levels.copy()


def is_custom_level(level_name: str) -> bool:
    """Check if a log level is a custom level."""
    return level_name in _custom_levels


TRACE = 5
add_custom_log_level("TRACE", TRACE)


__all__ = [
    "add_custom_log_level",
    "get_custom_levels",
    "is_custom_level",
    "TRACE",
]
