"""Configuration for dbhooks.

Settings are read from environment variables:

    DBHOOKS_LOG_LEVEL: Log level for the ``dbhooks`` logger (default: "INFO")
    DBHOOKS_LOCK_ADMISSIONS: Concurrent transactions admitted by the default
        lock (default: 1)
    DBHOOKS_DB_TYPE: Database type used by ``get_database`` (default: "memory")
    DBHOOKS_JSONDB_PATH: Base directory of the JSON database (default: "dbhooks_db")
    DBHOOKS_JSONDB_CACHE_SIZE: Documents cached by the JSON database (default: 500)
"""

import os
from typing import Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from dbhooks.common.context import GlobalContext
from dbhooks.exceptions import InvalidConfigurationError

_ENV_VARS = {
    "log_level": "DBHOOKS_LOG_LEVEL",
    "lock_admissions": "DBHOOKS_LOCK_ADMISSIONS",
    "db_type": "DBHOOKS_DB_TYPE",
    "jsondb_path": "DBHOOKS_JSONDB_PATH",
    "jsondb_cache_size": "DBHOOKS_JSONDB_CACHE_SIZE",
}


class DbHooksConfig(BaseModel):
    """Configuration model for dbhooks.

    Attributes:
        log_level: Logging level name
        lock_admissions: Admission counter of the default transaction lock
        db_type: Registered database type name
        jsondb_path: Base directory for the JSON database
        jsondb_cache_size: Maximum cached documents for the JSON database
    """

    log_level: str = "INFO"
    lock_admissions: int = Field(default=1, ge=1)
    db_type: str = "memory"
    jsondb_path: str = "dbhooks_db"
    jsondb_cache_size: int = Field(default=500, ge=0)

    @classmethod
    def from_env(cls) -> "DbHooksConfig":
        """Build a configuration from ``DBHOOKS_*`` environment variables.

        Raises:
            InvalidConfigurationError: If a variable holds an invalid value
        """
        values = {}
        for field_name, env_var in _ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw is not None and raw != "":
                values[field_name] = raw

        try:
            return cls(**values)
        except PydanticValidationError as e:
            error = e.errors()[0]
            setting = str(error["loc"][0]) if error.get("loc") else "config"
            raise InvalidConfigurationError(
                _ENV_VARS.get(setting, setting),
                values.get(setting),
                error["msg"],
                details={"errors": len(e.errors())},
            ) from e


_config: GlobalContext[DbHooksConfig] = GlobalContext(
    DbHooksConfig.from_env, "config"
)


def get_config() -> DbHooksConfig:
    """Get the active configuration (read from the environment on first use)."""
    return _config.get()


def set_config(config: Optional[DbHooksConfig]) -> None:
    """Replace the active configuration; ``None`` re-reads the environment."""
    if config is None:
        _config.clear()
    else:
        _config.set(config)


__all__ = ["DbHooksConfig", "get_config", "set_config"]
