"""Replaceable process-wide values.

``GlobalContext`` holds a lazily created default (built by ``factory``) that can
be swapped with ``set``, restored with ``clear``, or replaced temporarily with
the ``override`` context manager. The operation registry, the transaction lock
and the configuration are all held this way so tests can substitute them.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class GlobalContext(Generic[T]):
    """A replaceable singleton value."""

    def __init__(self, factory: Callable[[], T], name: str = "global"):
        self._factory = factory
        self._name = name
        self._value: Optional[T] = None
        self._lock = threading.Lock()

    def get(self) -> T:
        """Return the current value, creating the default on first access."""
        if self._value is None:
            with self._lock:
                if self._value is None:
                    self._value = self._factory()
                    logger.debug(f"Created default value for '{self._name}'")
        return self._value

    def set(self, value: T) -> None:
        """Replace the current value."""
        with self._lock:
            self._value = value
        logger.debug(f"Replaced value for '{self._name}'")

    def clear(self) -> None:
        """Drop the current value; the next ``get`` rebuilds the default."""
        with self._lock:
            self._value = None

    @contextmanager
    def override(self, value: T) -> Iterator[T]:
        """Temporarily replace the value within a ``with`` block."""
        with self._lock:
            previous = self._value
            self._value = value
        try:
            yield value
        finally:
            with self._lock:
                self._value = previous
