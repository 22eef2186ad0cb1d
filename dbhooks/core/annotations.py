"""Field-level behavior declarations for dbhooks models.

This module lets a model declare, per field, the behaviors that run before
(``on``) or after (``after``) a CRUD operation:

1. ``on`` / ``after`` (and ``on_create``, ``after_read``...): build a ``HookSpec``
2. ``hooked``: attach specs to a pydantic field
3. ``transient``: exclude a field from ``Model.export()`` and storage
4. ``primary_key``: mark the field holding the record key
5. Compound usage: ``primary_key(hooked(Field(...), on_create(...)))``

Declarations travel in the field's ``json_schema_extra`` and are registered in
the operation registry when the class is created (see ``register_model``).

Examples:
    @behavior("upper")
    def upper(repo, context, args, key, model):
        setattr(model, key, getattr(model, key).upper())

    class User(Model):
        id: str = primary_key("")
        name: str = hooked("", on_create_update(upper, priority=10))
        cache: dict = transient(Field(default_factory=dict))
"""

import functools
import hashlib
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, Union

from pydantic import Field
from pydantic.fields import FieldInfo

from .constants import DBOperations, Operation, Phase, operation_key
from .registry import (
    BehaviorDescriptor,
    OperationRegistry,
    OrderingHints,
    get_operations_registry,
)

logger = logging.getLogger(__name__)

Operations = Union[Operation, str, Iterable[Union[Operation, str]]]

# Class attribute holding a class's own declarations: field -> key -> handler id -> descriptor
DECLARATIONS_ATTR = "__dbhooks_declarations__"

_declaration_tokens = itertools.count(1)


def behavior(name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Give a handler an explicit, stable identity.

    Re-declaring a handler with the same identity on a subclass overrides its
    arguments instead of adding a second invocation.
    """

    def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
        handler.__behavior_name__ = name  # type: ignore[attr-defined]
        return handler

    return decorator


def handler_identity(handler: Callable[..., Any], name: Optional[str] = None) -> str:
    """Return the identity under which ``handler`` is registered."""
    if name:
        return name
    explicit = getattr(handler, "__behavior_name__", None)
    if explicit:
        return explicit
    if isinstance(handler, functools.partial):
        return f"partial:{handler_identity(handler.func)}:{handler.args!r}"

    qualname = getattr(handler, "__qualname__", None)
    if qualname and "<lambda>" not in qualname:
        return f"{handler.__module__}.{qualname}"

    code = getattr(handler, "__code__", None)
    if code is None:
        return f"{type(handler).__module__}.{type(handler).__qualname__}"

    digest = hashlib.sha256(
        code.co_code + repr(code.co_consts).encode() + repr(code.co_names).encode()
    ).hexdigest()[:16]
    logger.warning(
        f"Anonymous handler registered by content hash 'lambda:{digest}'; "
        "use @behavior(name) for a stable identity"
    )
    return f"lambda:{digest}"


def _as_operations(operations: Operations) -> Tuple[Operation, ...]:
    if isinstance(operations, (Operation, str)):
        return (Operation(operations),)
    return tuple(Operation(op) for op in operations)


@dataclass(frozen=True)
class HookSpec:
    """A behavior declared for a phase and one or more operations."""

    phase: Phase
    operations: Tuple[Operation, ...]
    handler: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    handler_id: str = ""
    hints: Optional[OrderingHints] = None

    def keys(self) -> List[str]:
        return [operation_key(self.phase, op) for op in self.operations]


def _spec(
    phase: Phase,
    operations: Operations,
    handler: Callable[..., Any],
    args: Tuple[Any, ...],
    name: Optional[str],
    priority: Optional[int],
    group: Optional[str],
    group_priority: Optional[int],
) -> HookSpec:
    if not callable(handler):
        raise TypeError(f"Behavior handler must be callable, got {handler!r}")
    if priority is None and (group is not None or group_priority is not None):
        raise ValueError("A priority is required when group ordering is given")
    hints = OrderingHints(priority, group, group_priority) if priority is not None else None
    return HookSpec(
        phase=phase,
        operations=_as_operations(operations),
        handler=handler,
        args=tuple(args),
        handler_id=handler_identity(handler, name),
        hints=hints,
    )


def on(
    operations: Operations,
    handler: Callable[..., Any],
    *args: Any,
    name: Optional[str] = None,
    priority: Optional[int] = None,
    group: Optional[str] = None,
    group_priority: Optional[int] = None,
) -> HookSpec:
    """Declare ``handler`` to run before the storage call of ``operations``.

    The handler is called as ``handler(repository, context, args, key, model)``;
    for ``UPDATE`` the previous version of the model is passed as a sixth
    argument.
    """
    return _spec(Phase.ON, operations, handler, args, name, priority, group, group_priority)


def after(
    operations: Operations,
    handler: Callable[..., Any],
    *args: Any,
    name: Optional[str] = None,
    priority: Optional[int] = None,
    group: Optional[str] = None,
    group_priority: Optional[int] = None,
) -> HookSpec:
    """Declare ``handler`` to run after the storage call of ``operations``."""
    return _spec(Phase.AFTER, operations, handler, args, name, priority, group, group_priority)


def on_create(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return on(DBOperations.CREATE, handler, *args, **kwargs)


def on_read(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return on(DBOperations.READ, handler, *args, **kwargs)


def on_update(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return on(DBOperations.UPDATE, handler, *args, **kwargs)


def on_delete(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return on(DBOperations.DELETE, handler, *args, **kwargs)


def on_create_update(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return on(DBOperations.CREATE_UPDATE, handler, *args, **kwargs)


def after_create(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return after(DBOperations.CREATE, handler, *args, **kwargs)


def after_read(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return after(DBOperations.READ, handler, *args, **kwargs)


def after_update(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return after(DBOperations.UPDATE, handler, *args, **kwargs)


def after_delete(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return after(DBOperations.DELETE, handler, *args, **kwargs)


def after_create_update(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return after(DBOperations.CREATE_UPDATE, handler, *args, **kwargs)


def after_all(handler: Callable[..., Any], *args: Any, **kwargs: Any) -> HookSpec:
    return after(DBOperations.ALL, handler, *args, **kwargs)


class HookDeclarations:
    """Callable ``json_schema_extra`` carrying behavior specs and field flags.

    When pydantic builds a JSON schema it calls this object, which renders the
    flags and the declared operation keys only.
    """

    def __init__(
        self,
        specs: Iterable[HookSpec] = (),
        flags: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
        token: Optional[int] = None,
    ):
        self.specs: Tuple[HookSpec, ...] = tuple(specs)
        self.flags: Dict[str, Any] = dict(flags or {})
        self.extra: Dict[str, Any] = dict(extra or {})
        self.token = token if token is not None else next(_declaration_tokens)

    def __call__(self, schema: Dict[str, Any], *args: Any) -> None:
        schema.update(self.extra)
        schema.update(self.flags)
        keys = sorted({key for spec in self.specs for key in spec.keys()})
        if keys:
            schema["hooks"] = keys

    def __repr__(self) -> str:
        return f"HookDeclarations(specs={len(self.specs)}, flags={self.flags})"


class HookedField:
    """Field wrapper that accumulates behavior specs and flags."""

    _FIELD_ATTRS = [
        "default",
        "default_factory",
        "alias",
        "validation_alias",
        "serialization_alias",
        "description",
        "title",
        "examples",
        "exclude",
        "discriminator",
        "frozen",
        "validate_default",
        "repr",
    ]

    def __init__(self, field_def: Any):
        self.field_def = field_def
        self.specs: List[HookSpec] = []
        self.flags: Dict[str, Any] = {}
        self.additional_kwargs: Dict[str, Any] = {}

    def add(self, *specs: HookSpec) -> "HookedField":
        self.specs.extend(specs)
        return self

    def mark(self, flag: str) -> "HookedField":
        self.flags[flag] = True
        return self

    def to_field(self) -> Any:
        """Convert to a pydantic Field carrying the accumulated declarations."""
        extra: Dict[str, Any] = {}
        specs: List[HookSpec] = []
        flags: Dict[str, Any] = {}
        metadata: List[Any] = []

        if isinstance(self.field_def, FieldInfo):
            kwargs: Dict[str, Any] = {}
            for attr in self._FIELD_ATTRS:
                if hasattr(self.field_def, attr):
                    value = getattr(self.field_def, attr)
                    if value is not None or attr == "default":
                        kwargs[attr] = value
            for key, value in self.additional_kwargs.items():
                if key not in kwargs or kwargs[key] is None:
                    kwargs[key] = value

            existing = self.field_def.json_schema_extra
            if isinstance(existing, HookDeclarations):
                specs.extend(existing.specs)
                flags.update(existing.flags)
                extra.update(existing.extra)
            elif isinstance(existing, dict):
                extra.update(existing)
            metadata = list(self.field_def.metadata)
        else:
            kwargs = {} if "default_factory" in self.additional_kwargs else {"default": self.field_def}
            kwargs.update(self.additional_kwargs)

        specs.extend(self.specs)
        flags.update(self.flags)
        kwargs["json_schema_extra"] = HookDeclarations(specs, flags, extra)

        field_info = Field(**kwargs)
        if metadata:
            field_info.metadata = metadata + list(field_info.metadata)
        return field_info


def _wrap(field_def: Any, specs: Iterable[HookSpec], flags: Iterable[str], kwargs: Dict[str, Any]) -> Any:
    annotated = HookedField(field_def)
    annotated.add(*specs)
    for flag in flags:
        annotated.mark(flag)
    if kwargs:
        annotated.additional_kwargs = kwargs
    return annotated.to_field()


def hooked(field_def: Any = None, *specs: HookSpec, **kwargs: Any) -> Any:
    """Attach behavior specs to a field.

    Args:
        field_def: Default value, pydantic Field, or a field produced by another
            dbhooks helper. May be omitted by passing a spec first.
        *specs: Specs built with ``on``/``after`` or their shortcuts
        **kwargs: Additional Field arguments (description, alias, etc.)

    Examples:
        name: str = hooked("", on_create(upper))
        slug: str = hooked(Field(default="", max_length=40), on_update(check))
        note: Optional[str] = hooked(after_read(log_access))
    """
    if isinstance(field_def, HookSpec):
        specs = (field_def,) + specs
        field_def = None
    return _wrap(field_def, specs, (), kwargs)


def transient(field_def: Any = None, **kwargs: Any) -> Any:
    """Mark a field as transient - excluded from export and storage."""
    return _wrap(field_def, (), ("transient",), kwargs)


def primary_key(field_def: Any = None, **kwargs: Any) -> Any:
    """Mark the field holding the record key."""
    return _wrap(field_def, (), ("primary_key",), kwargs)


def get_field_declarations(field_info: Any) -> Optional[HookDeclarations]:
    """Return the declarations carried by a pydantic FieldInfo, if any."""
    extra = getattr(field_info, "json_schema_extra", None)
    return extra if isinstance(extra, HookDeclarations) else None


def _model_fields(cls: Type) -> Dict[str, Any]:
    return getattr(cls, "__pydantic_fields__", None) or {}


def _is_inherited(cls: Type, name: str, declarations: HookDeclarations) -> bool:
    for base in cls.__mro__[1:]:
        inherited = get_field_declarations(_model_fields(base).get(name))
        if inherited is not None and inherited.token == declarations.token:
            return True
    return False


def register_model(cls: Type, registry: Optional[OperationRegistry] = None) -> int:
    """Register the behaviors declared by ``cls``'s own fields.

    Inherited fields that were not redeclared are skipped; their behaviors are
    already registered on the class that declared them.

    Returns:
        Number of new registry entries
    """
    registry = registry or get_operations_registry()
    own = cls.__dict__.get(DECLARATIONS_ATTR)
    if own is None:
        own = {}
        setattr(cls, DECLARATIONS_ATTR, own)
    added = 0

    for name, field_info in _model_fields(cls).items():
        declarations = get_field_declarations(field_info)
        if declarations is None or not declarations.specs:
            continue
        if _is_inherited(cls, name, declarations):
            continue

        for spec in declarations.specs:
            for key in spec.keys():
                descriptor = BehaviorDescriptor(
                    key=key,
                    handler_id=spec.handler_id,
                    handler=spec.handler,
                    args=spec.args,
                    hints=spec.hints,
                    declaring_class=cls,
                    prop=name,
                )
                own.setdefault(name, {}).setdefault(key, {}).setdefault(
                    spec.handler_id, descriptor
                )
                if registry.register(descriptor, key, cls, name):
                    added += 1

    if added:
        logger.debug(f"Registered {added} behaviors for {cls.__name__}")
    return added


def get_declarations(cls: Type) -> Dict[str, Dict[str, Dict[str, BehaviorDescriptor]]]:
    """Return the declaration metadata of ``cls`` itself (not its parents)."""
    return cls.__dict__.get(DECLARATIONS_ATTR, {})


def declared_properties(cls: Type, key: str) -> List[str]:
    """List fields declaring behaviors for ``key``, ancestor fields first."""
    props: List[str] = []
    for klass in reversed(cls.__mro__):
        for prop, by_key in klass.__dict__.get(DECLARATIONS_ATTR, {}).items():
            if key in by_key and prop not in props:
                props.append(prop)
    return props


def merged_declarations(cls: Type, prop: str, key: str) -> Dict[str, BehaviorDescriptor]:
    """Merge declarations of ``prop`` across the hierarchy.

    Ordered ancestor-first; the most-derived declaration of a handler wins.
    """
    merged: Dict[str, BehaviorDescriptor] = {}
    for klass in reversed(cls.__mro__):
        own = klass.__dict__.get(DECLARATIONS_ATTR, {})
        for handler_id, descriptor in own.get(prop, {}).get(key, {}).items():
            merged[handler_id] = descriptor
    return merged


def _flagged(cls: Type, flag: str) -> List[str]:
    names = []
    for name, field_info in _model_fields(cls).items():
        declarations = get_field_declarations(field_info)
        if declarations is not None and declarations.flags.get(flag):
            names.append(name)
    return names


def get_transient_attrs(cls: Type) -> List[str]:
    """Get all transient field names for a class and its parents."""
    return _flagged(cls, "transient")


def is_transient(cls: Type, attr_name: str) -> bool:
    return attr_name in get_transient_attrs(cls)


def get_primary_key(cls: Type) -> Optional[str]:
    """Return the primary-key field name of ``cls``, or None."""
    keys = _flagged(cls, "primary_key")
    return keys[0] if keys else None
