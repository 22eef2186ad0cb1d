"""Transactions and transaction-bound object views."""

import asyncio
import inspect
import itertools
import logging
import time
import types
from typing import Any, Callable, List, Optional, Sequence

from dbhooks.common.context import GlobalContext
from dbhooks.exceptions import TransactionError

from .lock import SynchronousLock, TransactionLock

logger = logging.getLogger(__name__)

# Monotonic ids seeded from the wall clock
_transaction_ids = itertools.count(time.time_ns())


def _default_lock() -> TransactionLock:
    from dbhooks.config import get_config

    return SynchronousLock(get_config().lock_admissions)


_ORIGINAL = "__dbhooks_original__"
_TRANSACTION = "__dbhooks_transaction__"

_lock: GlobalContext[TransactionLock] = GlobalContext(_default_lock, "transaction_lock")


def is_transactional(obj: Any) -> bool:
    """Check whether a function was declared with ``@transactional``."""
    return bool(getattr(obj, "__transactional__", False))


def is_transactional_class(obj: Any) -> bool:
    """Check whether an object's class is marked ``@Transactional``."""
    cls = obj if isinstance(obj, type) else type(obj)
    return bool(getattr(cls, "__transactional_class__", False))


class Transaction:
    """A unit of work run under the transaction lock.

    Args:
        source: Name of the issuing object (usually its class name)
        method: Name of the issuing method
        action: Callable started when the lock admits the transaction
        metadata: Free-form values declared with ``@transactional``
    """

    def __init__(
        self,
        source: str,
        method: Optional[str] = None,
        action: Optional[Callable[[], Any]] = None,
        metadata: Optional[Sequence[Any]] = None,
    ):
        self.id: int = next(_transaction_ids)
        self.source = source
        self.method = method
        self.action = action
        self.metadata = tuple(metadata or ())
        self.log: List[str] = [f"{self.id} | {source} | {method}"]
        self.lock: Optional[TransactionLock] = None
        self._host: Optional["Transaction"] = None

    @property
    def host(self) -> "Transaction":
        """The outermost transaction this one was bound into (or itself)."""
        return self._host.host if self._host is not None else self

    async def fire(self) -> Any:
        """Run the action.

        Raises:
            TransactionError: If no action is set
        """
        if self.action is None:
            raise TransactionError(
                f"Missing action for {self.describe()}",
                details={"transaction": self.id},
            )
        result = self.action()
        if inspect.isawaitable(result):
            result = await result
        return result

    def bind(self, next_transaction: "Transaction") -> "Transaction":
        """Run ``next_transaction`` as a continuation of this transaction.

        Logs are concatenated, this transaction adopts the nested action and
        the nested transaction binds objects to this one from now on.
        """
        self.log.extend(next_transaction.log)
        self.action = next_transaction.action
        next_transaction._host = self
        next_transaction.lock = self.lock
        return self

    def bind_to_transaction(self, obj: Any) -> Any:
        """Return a view of ``obj`` whose transactional methods receive this transaction."""
        if self._host is not None:
            return self._host.bind_to_transaction(obj)
        return TransactionBoundProxy(self, unwrap(obj))

    def describe(self, with_id: bool = True, with_log: bool = False) -> str:
        text = f"[{self.id}]" if with_id else ""
        text += f"[Transaction][{self.source}.{self.method}]"
        if with_log:
            text += "\n" + "\n".join(self.log)
        return text

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"Transaction(id={self.id}, source={self.source!r}, method={self.method!r})"

    @classmethod
    def get_lock(cls) -> TransactionLock:
        """Get the process-wide transaction lock."""
        return _lock.get()

    @classmethod
    def set_lock(cls, lock: Optional[TransactionLock]) -> None:
        """Replace the process-wide lock; ``None`` restores a fresh default.

        Transactions already submitted keep the lock they started with.
        """
        if lock is None:
            _lock.clear()
        else:
            _lock.set(lock)

    @classmethod
    async def submit(cls, transaction: "Transaction") -> None:
        lock = cls.get_lock()
        transaction.lock = lock
        await lock.submit(transaction)

    @classmethod
    async def release(cls, error: Optional[BaseException] = None) -> None:
        await cls.get_lock().release(error)

    @classmethod
    async def push(cls, issuer: Any, method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run ``method(bound_issuer, *args, **kwargs)`` as a new transaction."""
        target = unwrap(issuer)
        transaction = cls(
            type(target).__name__, getattr(method, "__name__", "push")
        )
        return await run_transaction(
            cls.get_lock(),
            transaction,
            lambda: method(transaction.bind_to_transaction(target), *args, **kwargs),
        )


class TransactionBoundProxy:
    """View of an object bound to a transaction.

    Transactional methods receive the transaction as their first argument,
    plain methods run with the view as ``self`` (so their own calls stay
    bound) and attributes holding ``@Transactional`` objects are bound too.
    ``isinstance`` and ``super()`` see the original class.
    """

    def __init__(self, transaction: Transaction, original: Any):
        object.__setattr__(self, _TRANSACTION, transaction)
        object.__setattr__(self, _ORIGINAL, original)

    @property  # type: ignore[misc]
    def __class__(self) -> type:
        return type(object.__getattribute__(self, _ORIGINAL))

    def __getattr__(self, name: str) -> Any:
        original = object.__getattribute__(self, _ORIGINAL)
        transaction = object.__getattribute__(self, _TRANSACTION)
        try:
            static = inspect.getattr_static(type(original), name)
        except AttributeError:
            static = None

        if is_transactional(static):
            return _bind_first(getattr(original, name), transaction)
        if inspect.isfunction(static) and name not in getattr(original, "__dict__", {}):
            return types.MethodType(static, self)

        value = getattr(original, name)
        if not isinstance(value, type) and is_transactional_class(value):
            return transaction.bind_to_transaction(value)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(object.__getattribute__(self, _ORIGINAL), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(object.__getattribute__(self, _ORIGINAL), name)

    def __repr__(self) -> str:
        original = object.__getattribute__(self, _ORIGINAL)
        transaction = object.__getattribute__(self, _TRANSACTION)
        return f"<{original!r} bound to {transaction.describe()}>"


def _bind_first(method: Callable[..., Any], transaction: Transaction) -> Callable[..., Any]:
    def bound(*args: Any, **kwargs: Any) -> Any:
        return method(transaction, *args, **kwargs)

    bound.__name__ = getattr(method, "__name__", "bound")
    return bound


def unwrap(obj: Any) -> Any:
    """Return the original object behind a transaction-bound view."""
    if type(obj) is TransactionBoundProxy:
        return object.__getattribute__(obj, _ORIGINAL)
    return obj


def bound_transaction(obj: Any) -> Optional[Transaction]:
    """Return the transaction a view is bound to, or None for plain objects."""
    if type(obj) is TransactionBoundProxy:
        return object.__getattribute__(obj, _TRANSACTION)
    return None


def _settle(
    future: "asyncio.Future[Any]",
    error: Optional[BaseException],
    result: Any,
    finished: bool,
) -> None:
    if future.done():
        return
    # An unfinished action was cancelled
    if not finished:
        future.cancel()
    elif error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def run_transaction(
    lock: TransactionLock, transaction: Transaction, call: Callable[[], Any]
) -> Any:
    """Submit ``transaction`` running ``call`` and wait for its result.

    The lock is always released, with the error of ``call`` if it failed, and
    that error is re-raised to the caller. If the caller stops waiting before
    the transaction is admitted, ``call`` is skipped and the slot handed on.
    """
    future = asyncio.get_running_loop().create_future()

    async def action() -> None:
        if future.done():
            logger.debug(f"Skipping {transaction.describe()}, its caller is gone")
            await lock.release(None, transaction)
            return
        error: Optional[BaseException] = None
        result: Any = None
        completed = False
        try:
            result = call()
            if inspect.isawaitable(result):
                result = await result
            completed = True
        except Exception as e:
            error = e
        finally:
            try:
                await lock.release(error, transaction)
            finally:
                _settle(future, error, result, completed or error is not None)

    transaction.action = action
    transaction.lock = lock
    await lock.submit(transaction)
    return await future


async def continue_transaction(
    host: Transaction, nested: Transaction, call: Callable[[], Any]
) -> Any:
    """Run ``call`` inline within the already running ``host`` transaction."""
    lock = host.lock or Transaction.get_lock()
    if not lock.is_active(host):
        raise TransactionError(
            f"{host.describe()} is not running",
            details={"transaction": host.id, "nested": nested.id},
        )
    future = asyncio.get_running_loop().create_future()

    async def action() -> None:
        try:
            result = call()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    nested.action = action
    host.bind(nested)
    logger.debug(f"Binding {nested.describe()} into {host.describe()}")
    await lock.submit(host)
    return await future
