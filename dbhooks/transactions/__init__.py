"""Transaction lock, transactions and transactional decorators."""

from .decorators import Transactional, transactional, transactional_super_call
from .lock import Lock, SynchronousLock, TransactionLock
from .transaction import (
    Transaction,
    TransactionBoundProxy,
    bound_transaction,
    is_transactional,
    is_transactional_class,
    unwrap,
)

__all__ = [
    "Transactional",
    "transactional",
    "transactional_super_call",
    "Lock",
    "SynchronousLock",
    "TransactionLock",
    "Transaction",
    "TransactionBoundProxy",
    "bound_transaction",
    "is_transactional",
    "is_transactional_class",
    "unwrap",
]
