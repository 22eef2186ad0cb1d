"""Tests for the operation registry."""

import pytest

from dbhooks.core.constants import Operation, Phase, operation_key
from dbhooks.core.registry import (
    BehaviorDescriptor,
    OperationRegistry,
    OrderingHints,
    get_operations_registry,
    operations_registry_context,
    set_operations_registry,
)
from dbhooks.exceptions import InternalError

ON_CREATE = operation_key(Phase.ON, Operation.CREATE)


def handler_a(*args):
    pass


def handler_b(*args):
    pass


class Base:
    pass


class Middle(Base):
    pass


class Leaf(Middle):
    pass


def descriptor(handler_id, handler=handler_a, args=(), hints=None, cls=Base):
    return BehaviorDescriptor(
        key=ON_CREATE,
        handler_id=handler_id,
        handler=handler,
        args=args,
        hints=hints,
        declaring_class=cls,
        prop="name",
    )


class TestRegistration:
    """Test idempotent registration."""

    def test_register_and_get(self):
        registry = OperationRegistry()
        assert registry.register(descriptor("a"), ON_CREATE, Base, "name") is True

        entries = registry.get(Base, "name", ON_CREATE)
        assert [d.handler_id for d in entries] == ["a"]

    def test_duplicate_registration_is_noop(self):
        registry = OperationRegistry()
        first = descriptor("a", args=(1,))
        registry.register(first, ON_CREATE, Base, "name")

        assert registry.register(descriptor("a", args=(2,)), ON_CREATE, Base, "name") is False
        entries = registry.get(Base, "name", ON_CREATE)
        assert len(entries) == 1
        assert entries[0].args == (1,)

    def test_same_identity_on_other_key_is_separate(self):
        registry = OperationRegistry()
        on_update = operation_key(Phase.ON, Operation.UPDATE)
        registry.register(descriptor("a"), ON_CREATE, Base, "name")
        registry.register(descriptor("a"), on_update, Base, "name")

        assert len(registry.get(Base, "name", ON_CREATE)) == 1
        assert len(registry.get(Base, "name", on_update)) == 1

    def test_clear(self):
        registry = OperationRegistry()
        registry.register(descriptor("a"), ON_CREATE, Base, "name")
        registry.clear()
        assert registry.get(Base, "name", ON_CREATE) == []


class TestResolution:
    """Test resolution across the class hierarchy."""

    def test_resolve_is_ancestor_first(self):
        registry = OperationRegistry()
        registry.register(descriptor("leaf", cls=Leaf), ON_CREATE, Leaf, "name")
        registry.register(descriptor("base", cls=Base), ON_CREATE, Base, "name")

        resolved = registry.resolve(Leaf(), "name", ON_CREATE)
        assert [d.handler_id for d in resolved] == ["base", "leaf"]

    def test_resolve_skips_levels_without_entries(self):
        registry = OperationRegistry()
        registry.register(descriptor("base"), ON_CREATE, Base, "name")

        assert [d.handler_id for d in registry.resolve(Leaf, "name", ON_CREATE)] == ["base"]
        assert registry.resolve(Leaf, "other", ON_CREATE) == []

    def test_redeclared_handler_resolves_once(self):
        registry = OperationRegistry()
        registry.register(descriptor("a", handler_a, cls=Base), ON_CREATE, Base, "name")
        registry.register(descriptor("b", handler_b, cls=Base), ON_CREATE, Base, "name")
        registry.register(descriptor("a", handler_b, cls=Leaf), ON_CREATE, Leaf, "name")

        resolved = registry.resolve(Leaf, "name", ON_CREATE)
        assert [d.handler_id for d in resolved] == ["a", "b"]
        assert resolved[0].handler is handler_b

    def test_resolve_args_most_derived_wins(self):
        registry = OperationRegistry()
        registry.register(descriptor("a", args=({"a": 1},)), ON_CREATE, Base, "name")
        registry.register(
            descriptor("a", args=({"a": 2},), hints=OrderingHints(5), cls=Middle),
            ON_CREATE,
            Middle,
            "name",
        )

        args, hints = registry.resolve_args("name", "a", Leaf(), ON_CREATE)
        assert args == ({"a": 2},)
        assert hints == OrderingHints(5)

        base_args, base_hints = registry.resolve_args("name", "a", Base, ON_CREATE)
        assert base_args == ({"a": 1},)
        assert base_hints is None

    def test_resolve_args_unknown_handler(self):
        registry = OperationRegistry()
        with pytest.raises(InternalError):
            registry.resolve_args("name", "missing", Leaf, ON_CREATE)


class TestRegistryProvider:
    """Test the replaceable process-wide registry."""

    def test_override_replaces_registry_temporarily(self):
        default = get_operations_registry()
        replacement = OperationRegistry()

        with operations_registry_context().override(replacement):
            assert get_operations_registry() is replacement

        assert get_operations_registry() is default

    def test_set_operations_registry(self):
        default = get_operations_registry()
        replacement = OperationRegistry()
        try:
            set_operations_registry(replacement)
            assert get_operations_registry() is replacement
        finally:
            set_operations_registry(default)
        assert get_operations_registry() is default


class TestOrderingHints:
    """Test the hint sort key."""

    def test_missing_group_priority_sorts_last(self):
        assert OrderingHints(1, "g", 5).sort_key() < OrderingHints(1).sort_key()
        assert OrderingHints(1).sort_key() < OrderingHints(2, "g", 0).sort_key()
