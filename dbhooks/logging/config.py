"""Logging setup for applications using dbhooks.

The library itself only creates module loggers; call ``configure_logging`` from
application code (or tests) to attach a handler to the ``dbhooks`` logger.
"""

import logging
from typing import Optional, Union

from dbhooks.config import get_config
from dbhooks.exceptions import InvalidConfigurationError

from .custom_levels import TRACE

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger(__name__)


def resolve_level(level: Union[str, int]) -> int:
    """Translate a level name (including ``TRACE``) into its number.

    Raises:
        InvalidConfigurationError: If the name is not a known level
    """
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name == "TRACE":
        return TRACE
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise InvalidConfigurationError(
            "log_level", level, "Unknown log level", details={"level": level}
        )
    return value


def configure_logging(
    level: Optional[Union[str, int]] = None,
    fmt: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """Configure the ``dbhooks`` package logger.

    Args:
        level: Level name or number; defaults to the configured ``log_level``
        fmt: Log record format
        handler: Handler to install; a ``StreamHandler`` by default

    Returns:
        The configured ``dbhooks`` logger
    """
    if level is None:
        level = get_config().log_level

    package_logger = logging.getLogger("dbhooks")
    package_logger.setLevel(resolve_level(level))

    for existing in list(package_logger.handlers):
        if getattr(existing, "_dbhooks_handler", False):
            package_logger.removeHandler(existing)

    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    handler._dbhooks_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)

    logger.debug(f"dbhooks logging configured at level {level}")
    return package_logger
