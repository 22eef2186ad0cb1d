"""Locks admitting a bounded number of concurrent transactions.

``SynchronousLock`` admits up to ``counter`` transactions at a time and queues
the rest in submission order. Submitting a transaction that is already running
(a nested call re-bound to its host) continues it inline without touching the
admission counter. Each release either hands the slot to the next queued
transaction, scheduled on the next event-loop turn, or returns it to the
counter.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Deque, Dict, Optional, Set

from dbhooks.exceptions import TransactionError
from dbhooks.logging.custom_levels import TRACE

if TYPE_CHECKING:
    from .transaction import Transaction

logger = logging.getLogger(__name__)


class Lock:
    """Async mutex with a lazily created ``asyncio.Lock``."""

    def __init__(self) -> None:
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the async lock lazily."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def acquire(self) -> None:
        await self._get_lock().acquire()

    def release(self) -> None:
        self._get_lock().release()

    def locked(self) -> bool:
        return self._lock is not None and self._lock.locked()

    async def __aenter__(self) -> "Lock":
        await self.acquire()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.release()


class TransactionLock(ABC):
    """Interface of the lock used by transactional methods."""

    @property
    @abstractmethod
    def current_transaction(self) -> Optional["Transaction"]:
        """The most recently fired, not yet released transaction."""

    @abstractmethod
    def is_active(self, transaction: "Transaction") -> bool:
        """Whether ``transaction`` has been fired and not yet released."""

    @abstractmethod
    async def submit(self, transaction: "Transaction") -> None:
        """Admit, continue or queue ``transaction``."""

    @abstractmethod
    async def release(
        self, error: Optional[BaseException] = None, transaction: Optional["Transaction"] = None
    ) -> None:
        """Mark a running transaction as finished."""


OnBegin = Callable[[], Awaitable[None]]
OnEnd = Callable[[Optional[BaseException]], Awaitable[None]]


class SynchronousLock(TransactionLock):
    """Admission-counted transaction lock with a FIFO queue.

    Args:
        counter: Number of transactions allowed to run at once
        on_begin: Awaited before each admitted transaction starts
        on_end: Awaited after each transaction finishes with its error, if any
    """

    def __init__(
        self,
        counter: int = 1,
        on_begin: Optional[OnBegin] = None,
        on_end: Optional[OnEnd] = None,
    ):
        if counter < 1:
            raise ValueError("Admission counter must be at least 1")
        self._counter = counter
        self._pending: Deque["Transaction"] = deque()
        self._current: Optional["Transaction"] = None
        self._active: Dict[int, "Transaction"] = {}
        self._on_begin = on_begin
        self._on_end = on_end
        self._mutex = Lock()
        self._tasks: Set["asyncio.Task[Any]"] = set()

    @property
    def current_transaction(self) -> Optional["Transaction"]:
        return self._current

    @property
    def admission_counter(self) -> int:
        return self._counter

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_active(self, transaction: "Transaction") -> bool:
        return transaction.id in self._active

    async def submit(self, transaction: "Transaction") -> None:
        """Admit, continue or queue ``transaction``.

        A transaction that is already running continues inline and the call
        returns once its current action finishes. A newly admitted transaction
        runs in its own task; a queued one waits for a release.
        """
        if transaction.action is None:
            raise TransactionError(
                f"Cannot submit {transaction.describe()} without an action",
                details={"transaction": transaction.id},
            )
        async with self._mutex:
            if transaction.id in self._active:
                continuation = True
            else:
                continuation = False
                if self._counter > 0:
                    self._counter -= 1
                    admitted = True
                else:
                    self._pending.append(transaction)
                    admitted = False

        if continuation:
            logger.log(TRACE, f"Continuing {transaction.describe()}")
            await transaction.fire()
        elif admitted:
            self._spawn(transaction)
        else:
            logger.log(
                TRACE, f"Queued {transaction.describe()} ({len(self._pending)} pending)"
            )

    async def fire(self, transaction: "Transaction") -> None:
        """Start an admitted transaction."""
        async with self._mutex:
            self._current = transaction
            self._active[transaction.id] = transaction
        logger.log(TRACE, f"Firing {transaction.describe()}")

        if self._on_begin is not None:
            try:
                await self._on_begin()
            except Exception as e:
                logger.error(f"Failed to run begin hook for {transaction.describe()}: {e}")

        await transaction.fire()

    async def release(
        self, error: Optional[BaseException] = None, transaction: Optional["Transaction"] = None
    ) -> None:
        """Finish a running transaction and hand its slot on.

        ``transaction`` defaults to the current one. Releasing a transaction
        that is not running is logged and ignored.
        """
        async with self._mutex:
            finished = transaction or self._current
            running = finished is not None and finished.id in self._active
            if running:
                del self._active[finished.id]
                if self._current is finished:
                    self._current = None

        if finished is None:
            logger.warning("Release called without a running transaction")
            return
        if not running:
            logger.warning(f"Release called for {finished.describe()} which is not running")
            return

        if self._on_end is not None:
            try:
                await self._on_end(error)
            except Exception as e:
                logger.error(f"Failed to run end hook after transaction: {e}")

        async with self._mutex:
            if self._pending:
                next_transaction = self._pending.popleft()
                asyncio.get_running_loop().call_soon(self._spawn, next_transaction)
                logger.log(TRACE, f"Scheduled {next_transaction.describe()}")
            else:
                self._counter += 1

    def _spawn(self, transaction: "Transaction") -> None:
        task = asyncio.ensure_future(self.fire(transaction))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Transaction task failed: {task.exception()}")
