"""dbhooks - CRUD lifecycle hooks for pydantic models.

Declare per-field behaviors on a model, and a repository runs them before and
after every Create/Read/Update/Delete, optionally under a transaction lock.
"""

from .config import DbHooksConfig, get_config, set_config
from .core import (
    Context,
    DBOperations,
    Model,
    Operation,
    OperationRegistry,
    Phase,
    after,
    after_all,
    after_create,
    after_create_update,
    after_delete,
    after_read,
    after_update,
    behavior,
    build_plan,
    composed,
    enforce,
    generated,
    get_operations_registry,
    hashed,
    hooked,
    on,
    on_create,
    on_create_update,
    on_delete,
    on_read,
    on_update,
    primary_key,
    readonly,
    serialized,
    set_operations_registry,
    timestamp,
    transient,
    unique,
)
from .exceptions import (
    ConflictError,
    ContextError,
    DbHooksError,
    InternalError,
    InvalidConfigurationError,
    NotFoundError,
    SerializationError,
    TransactionError,
    ValidationError,
)
from .repository import DatabaseRepository, Repository
from .transactions import (
    SynchronousLock,
    Transaction,
    Transactional,
    transactional,
    transactional_super_call,
)

__version__ = "0.0.1"

__all__ = [
    "DbHooksConfig",
    "get_config",
    "set_config",
    "Context",
    "DBOperations",
    "Model",
    "Operation",
    "OperationRegistry",
    "Phase",
    "after",
    "after_all",
    "after_create",
    "after_create_update",
    "after_delete",
    "after_read",
    "after_update",
    "behavior",
    "build_plan",
    "composed",
    "enforce",
    "generated",
    "get_operations_registry",
    "hashed",
    "hooked",
    "on",
    "on_create",
    "on_create_update",
    "on_delete",
    "on_read",
    "on_update",
    "primary_key",
    "readonly",
    "serialized",
    "set_operations_registry",
    "timestamp",
    "transient",
    "unique",
    "ConflictError",
    "ContextError",
    "DbHooksError",
    "InternalError",
    "InvalidConfigurationError",
    "NotFoundError",
    "SerializationError",
    "TransactionError",
    "ValidationError",
    "DatabaseRepository",
    "Repository",
    "SynchronousLock",
    "Transaction",
    "Transactional",
    "transactional",
    "transactional_super_call",
]
