"""Decorators that run methods under the transaction lock.

Example:
    @Transactional
    class AccountRepository(DatabaseRepository):
        @transactional()
        async def update(self, model, *, context=None):
            return await super().update(model, context=context)

        @transactional()
        async def read(self, key, *, context=None):
            return await super().read(key, context=context)

``update`` reads the previous version through ``self.read``; because ``self``
is bound to the running transaction, the read continues that transaction
instead of queueing behind it.
"""

import functools
import inspect
from typing import Any, Awaitable, Callable, Type, TypeVar

from .transaction import (
    Transaction,
    bound_transaction,
    continue_transaction,
    run_transaction,
    unwrap,
)

C = TypeVar("C", bound=Type[Any])


def transactional(*metadata: Any) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Run an async method as a transaction.

    A call whose first positional argument is a running ``Transaction``, or
    whose ``self`` is bound to one, continues that transaction inline.
    Otherwise a new transaction is submitted to the lock and the call waits
    for its result; errors are re-raised after the lock is released.

    Args:
        *metadata: Values stored on every transaction created by the method
    """

    def decorator(method: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        if not inspect.iscoroutinefunction(method):
            raise TypeError(f"@transactional requires an async method, got {method!r}")

        @functools.wraps(method)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            host = None
            if args and isinstance(args[0], Transaction):
                host, args = args[0], args[1:]
            else:
                host = bound_transaction(self)

            target = unwrap(self)
            transaction = Transaction(type(target).__name__, method.__name__, metadata=metadata)

            if host is not None:
                host = host.host
                return await continue_transaction(
                    host,
                    transaction,
                    lambda: method(host.bind_to_transaction(target), *args, **kwargs),
                )

            return await run_transaction(
                Transaction.get_lock(),
                transaction,
                lambda: method(transaction.bind_to_transaction(target), *args, **kwargs),
            )

        wrapper.__transactional__ = True  # type: ignore[attr-defined]
        wrapper.__transaction_metadata__ = metadata  # type: ignore[attr-defined]
        return wrapper

    return decorator


def Transactional(cls: C) -> C:
    """Mark a class whose instances are bound along with their owner."""
    cls.__transactional_class__ = True
    return cls


async def transactional_super_call(method: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
    """Call a transactional ``method`` within the lock's current transaction."""
    current = Transaction.get_lock().current_transaction
    if current is None:
        return await method(*args, **kwargs)
    return await method(current, *args, **kwargs)
