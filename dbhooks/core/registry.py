"""Operation registry.

Stores behavior descriptors keyed by declaring class, field name and operation
key, and resolves the effective set of behaviors for an instance by walking its
class hierarchy. Resolution is ancestor-first: behaviors declared on a base
class run before behaviors added by a subclass, and a subclass re-declaring the
same handler re-parameterizes it instead of adding a second invocation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from dbhooks.common.context import GlobalContext
from dbhooks.exceptions import InternalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderingHints:
    """Global ordering of a behavior within one operation."""

    priority: int
    group: Optional[str] = None
    group_priority: Optional[int] = None

    def sort_key(self) -> Tuple[float, float]:
        return (
            self.priority,
            self.group_priority if self.group_priority is not None else float("inf"),
        )


@dataclass(frozen=True)
class BehaviorDescriptor:
    """A handler bound to one field and one operation key."""

    key: str
    handler_id: str
    handler: Callable[..., Any] = field(compare=False)
    args: Tuple[Any, ...] = ()
    hints: Optional[OrderingHints] = None
    declaring_class: Optional[Type] = None
    prop: Optional[str] = None


# declaring class -> field -> operation key -> handler id -> descriptor
RegistryCache = Dict[Type, Dict[str, Dict[str, Dict[str, BehaviorDescriptor]]]]


def _class_of(instance_or_class: Any) -> Type:
    return instance_or_class if isinstance(instance_or_class, type) else type(instance_or_class)


class OperationRegistry:
    """Per-class store of field behaviors."""

    def __init__(self) -> None:
        self._cache: RegistryCache = {}

    def register(
        self,
        descriptor: BehaviorDescriptor,
        key: str,
        declaring_class: Type,
        prop: str,
    ) -> bool:
        """Register ``descriptor`` at ``(declaring_class, prop, key)``.

        Returns:
            False if a handler with the same identity was already registered
            at that exact key (the call is then a no-op)
        """
        handlers = (
            self._cache.setdefault(declaring_class, {})
            .setdefault(prop, {})
            .setdefault(key, {})
        )
        if descriptor.handler_id in handlers:
            return False
        handlers[descriptor.handler_id] = descriptor
        logger.debug(
            f"Registered '{descriptor.handler_id}' for {declaring_class.__name__}.{prop} on '{key}'"
        )
        return True

    def get(self, declaring_class: Type, prop: str, key: str) -> List[BehaviorDescriptor]:
        """Return descriptors registered directly on ``declaring_class``."""
        return list(self._cache.get(declaring_class, {}).get(prop, {}).get(key, {}).values())

    def resolve(self, instance_or_class: Any, prop: str, key: str) -> List[BehaviorDescriptor]:
        """Resolve the effective descriptors for a field across the class hierarchy.

        The result is ordered ancestor-first and holds one descriptor per
        handler identity; the handler of the most-derived declaration wins.
        """
        resolved: Dict[str, BehaviorDescriptor] = {}
        for klass in reversed(_class_of(instance_or_class).__mro__):
            for descriptor in self.get(klass, prop, key):
                # A re-declaration keeps the position of the first (ancestor) entry
                resolved[descriptor.handler_id] = descriptor
        return list(resolved.values())

    def resolve_args(
        self, prop: str, handler_id: str, instance_or_class: Any, key: str
    ) -> Tuple[Tuple[Any, ...], Optional[OrderingHints]]:
        """Return the static args and hints of the most-derived declaration.

        Raises:
            InternalError: If no class in the hierarchy declares the handler
        """
        for klass in _class_of(instance_or_class).__mro__:
            descriptor = self._cache.get(klass, {}).get(prop, {}).get(key, {}).get(handler_id)
            if descriptor is not None:
                return descriptor.args, descriptor.hints
        raise InternalError(
            f"Could not find registered handler '{handler_id}' for {prop} on '{key}'",
            details={"prop": prop, "handler_id": handler_id, "key": key},
        )

    def clear(self) -> None:
        self._cache.clear()


_registry: GlobalContext[OperationRegistry] = GlobalContext(
    OperationRegistry, "operations_registry"
)


def get_operations_registry() -> OperationRegistry:
    """Get the process-wide operation registry."""
    return _registry.get()


def set_operations_registry(registry: Optional[OperationRegistry]) -> None:
    """Replace the process-wide registry; ``None`` restores a fresh default.

    Only registrations and resolutions made after the call see the new registry.
    """
    if registry is None:
        _registry.clear()
    else:
        _registry.set(registry)


def operations_registry_context() -> GlobalContext[OperationRegistry]:
    """Expose the registry holder (``override`` is handy in tests)."""
    return _registry
