"""Hierarchical per-operation context.

A :class:`Context` is created for every repository operation and threaded
through all behaviors of that operation. Values put into a child scope never
leak into the parent, while lookups that miss locally fall back to the parent.
The root scope carries the operation timestamp; children inherit it.

Example:
    ctx = Context.from_operation(Operation.CREATE, User)
    ctx.put("actor", "alice")
    child = ctx.child(Operation.READ, User)
    child.get("actor")  # "alice", through the parent link
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Type

from dbhooks.exceptions import ContextError

from .constants import Operation

_MISSING = object()
_ABSENT = object()


class Context:
    """Mutable key/value scope with fallback to a parent scope."""

    def __init__(self, parent: Optional["Context"] = None, **values: Any):
        self._parent = parent
        self._values: Dict[str, Any] = {}
        if parent is None:
            self._values["timestamp"] = datetime.now(timezone.utc)
        self._values.update(values)

    @classmethod
    def from_operation(
        cls, operation: Operation, model_class: Optional[Type] = None, **flags: Any
    ) -> "Context":
        """Create a root context for ``operation`` on ``model_class``."""
        return cls(
            operation=Operation(operation),
            affected_models=[model_class] if model_class is not None else [],
            **flags,
        )

    @property
    def parent(self) -> Optional["Context"]:
        return self._parent

    @property
    def timestamp(self) -> datetime:
        return self.get("timestamp")

    @property
    def operation(self) -> Optional[Operation]:
        return self.get("operation", None)

    @property
    def affected_models(self) -> List[Type]:
        return self.get("affected_models", [])

    def get(self, key: str, default: Any = _MISSING) -> Any:
        """Return ``key`` from this scope or the nearest ancestor holding it.

        Raises:
            ContextError: If no scope holds the key and no default is given
        """
        if key in self._values:
            return self._values[key]
        if self._parent is not None:
            return self._parent.get(key, default)
        if default is _MISSING:
            raise ContextError(f"Context key '{key}' not found", details={"key": key})
        return default

    def put(self, key: str, value: Any) -> "Context":
        """Set ``key`` in this scope, replacing any local value."""
        self._values[key] = value
        return self

    def push(self, key: str, value: Any) -> "Context":
        """Set ``key`` in this scope; fails if the key is already set locally."""
        if key in self._values:
            raise ContextError(
                f"Context key '{key}' already exists", details={"key": key}
            )
        self._values[key] = value
        return self

    def pop(self, key: str, default: Any = _MISSING) -> Any:
        """Remove and return ``key`` from the nearest scope holding it."""
        if key in self._values:
            return self._values.pop(key)
        if self._parent is not None:
            return self._parent.pop(key, default)
        if default is _MISSING:
            raise ContextError(f"Context key '{key}' not found", details={"key": key})
        return default

    def accumulate(self, **values: Any) -> "Context":
        """Set several keys at once in this scope."""
        self._values.update(values)
        return self

    def child(
        self, operation: Operation, model_class: Optional[Type] = None, **values: Any
    ) -> "Context":
        """Create a nested scope for a related ``operation``."""
        return Context(
            parent=self,
            operation=Operation(operation),
            affected_models=[model_class] if model_class is not None else [],
            **values,
        )

    def keys(self) -> Iterator[str]:
        """Iterate keys visible from this scope, nearest scope first."""
        seen = set()
        scope: Optional[Context] = self
        while scope is not None:
            for key in scope._values:
                if key not in seen:
                    seen.add(key)
                    yield key
            scope = scope._parent

    def __contains__(self, key: str) -> bool:
        return self.get(key, _ABSENT) is not _ABSENT

    def __repr__(self) -> str:
        return f"Context(operation={self.operation!r}, keys={list(self._values)})"
