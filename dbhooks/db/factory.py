"""Database factory with registry-based configuration."""

import logging
from typing import Any, Callable, Dict, Optional, Type

from dbhooks.config import get_config
from dbhooks.exceptions import InvalidConfigurationError, ValidationError

from .database import Database
from .jsondb import JsonDB
from .memory import MemoryDB

logger = logging.getLogger(__name__)

# Registry for database implementations
_DATABASE_REGISTRY: Dict[str, Type[Database]] = {}
# Registry for database configuration functions
_DATABASE_CONFIGURATORS: Dict[str, Callable[[Dict[str, Any]], Database]] = {}


def register_database(
    name: str,
    database_class: Type[Database],
    configurator: Optional[Callable[[Dict[str, Any]], Database]] = None,
) -> None:
    """Register a database implementation.

    Args:
        name: Database type name to register
        database_class: Class implementing the Database interface
        configurator: Optional function building an instance from kwargs

    Raises:
        ValidationError: If database_class doesn't inherit from Database
        InvalidConfigurationError: If name is already registered
    """
    if not (isinstance(database_class, type) and issubclass(database_class, Database)):
        raise ValidationError(
            f"Database class {getattr(database_class, '__name__', database_class)} must inherit from Database",
            details={"database_class": repr(database_class)},
        )

    if name in _DATABASE_REGISTRY:
        raise InvalidConfigurationError(
            "database_type",
            name,
            "Database type is already registered",
            details={"name": name},
        )

    _DATABASE_REGISTRY[name] = database_class
    _DATABASE_CONFIGURATORS[name] = configurator or (lambda kwargs: database_class(**kwargs))
    logger.debug(f"Registered database type '{name}'")


def unregister_database(name: str) -> None:
    """Unregister a database implementation."""
    _DATABASE_REGISTRY.pop(name, None)
    _DATABASE_CONFIGURATORS.pop(name, None)


def list_available_databases() -> Dict[str, Type[Database]]:
    """Get all available database types."""
    return _DATABASE_REGISTRY.copy()


def get_database(db_type: Optional[str] = None, **kwargs: Any) -> Database:
    """Get a database instance.

    Args:
        db_type: Registered database type; defaults to the configured ``db_type``
        **kwargs: Database-specific configuration

    Raises:
        InvalidConfigurationError: If the type is unknown or configuration fails
    """
    if db_type is None:
        db_type = get_config().db_type

    if db_type not in _DATABASE_REGISTRY:
        available_types = ", ".join(sorted(_DATABASE_REGISTRY))
        raise InvalidConfigurationError(
            "database_type",
            db_type,
            f"Unsupported database type. Available types: {available_types}",
        )

    try:
        return _DATABASE_CONFIGURATORS[db_type](kwargs)
    except Exception as e:
        raise InvalidConfigurationError(
            "database_configuration",
            db_type,
            f"Failed to configure database: {e}",
            details={"kwargs": kwargs},
        ) from e


def _register_builtin_databases() -> None:
    """Register built-in database implementations."""

    def json_configurator(kwargs: Dict[str, Any]) -> JsonDB:
        config = get_config()
        return JsonDB(
            str(kwargs.get("base_path") or config.jsondb_path),
            cache_size=kwargs.get("cache_size", config.jsondb_cache_size),
        )

    register_database("memory", MemoryDB)
    register_database("json", JsonDB, json_configurator)


_register_builtin_databases()
