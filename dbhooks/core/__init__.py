"""Core hook engine: context, registry, declarations, executor and behaviors."""

from .annotations import (
    HookDeclarations,
    HookSpec,
    after,
    after_all,
    after_create,
    after_create_update,
    after_delete,
    after_read,
    after_update,
    behavior,
    get_declarations,
    get_primary_key,
    get_transient_attrs,
    handler_identity,
    hooked,
    is_transient,
    on,
    on_create,
    on_create_update,
    on_delete,
    on_read,
    on_update,
    primary_key,
    register_model,
    transient,
)
from .behaviors import composed, generated, hashed, readonly, serialized, timestamp, unique
from .constants import DBOperations, Operation, Phase, operation_key
from .context import Context
from .executor import PlanStep, build_plan, enforce
from .model import Comparable, Model
from .registry import (
    BehaviorDescriptor,
    OperationRegistry,
    OrderingHints,
    get_operations_registry,
    set_operations_registry,
)

__all__ = [
    "HookDeclarations",
    "HookSpec",
    "after",
    "after_all",
    "after_create",
    "after_create_update",
    "after_delete",
    "after_read",
    "after_update",
    "behavior",
    "get_declarations",
    "get_primary_key",
    "get_transient_attrs",
    "handler_identity",
    "hooked",
    "is_transient",
    "on",
    "on_create",
    "on_create_update",
    "on_delete",
    "on_read",
    "on_update",
    "primary_key",
    "register_model",
    "transient",
    "composed",
    "generated",
    "hashed",
    "readonly",
    "serialized",
    "timestamp",
    "unique",
    "DBOperations",
    "Operation",
    "Phase",
    "operation_key",
    "Context",
    "PlanStep",
    "build_plan",
    "enforce",
    "Comparable",
    "Model",
    "BehaviorDescriptor",
    "OperationRegistry",
    "OrderingHints",
    "get_operations_registry",
    "set_operations_registry",
]
