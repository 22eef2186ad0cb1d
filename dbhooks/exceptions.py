"""Exception hierarchy for dbhooks.

Every error raised by the engine derives from :class:`DbHooksError` and carries
an HTTP-like ``code`` plus an optional ``details`` dictionary describing the
failure. Handlers are free to raise any exception; the executor and the
transaction lock propagate it unchanged.
"""

from typing import Any, Dict, Optional


class DbHooksError(Exception):
    """Base class for all dbhooks errors."""

    code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[int] = None,
    ):
        self.message = message
        self.details: Dict[str, Any] = details or {}
        if code is not None:
            self.code = code
        super().__init__(f"[{self.__class__.__name__}] {message}")


class InternalError(DbHooksError):
    """Raised on engine consistency violations (not caused by user input)."""

    code = 500


class TransactionError(InternalError):
    """Raised when a transaction cannot be fired or released."""


class ValidationError(DbHooksError):
    """Raised when a model violates a declared behavior."""

    code = 422


class SerializationError(DbHooksError):
    """Raised when a field cannot be serialized or deserialized."""

    code = 422


class NotFoundError(DbHooksError):
    """Raised when a record does not exist in storage."""

    code = 404


class ConflictError(DbHooksError):
    """Raised when a record clashes with an existing one."""

    code = 409


class ContextError(DbHooksError, KeyError):
    """Raised on invalid context key access."""

    code = 400

    def __str__(self) -> str:
        return self.args[0] if self.args else self.message


class InvalidConfigurationError(DbHooksError):
    """Raised when a configuration value is invalid."""

    def __init__(
        self,
        setting: str,
        value: Any,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.setting = setting
        self.value = value
        merged = {"setting": setting, "value": value}
        merged.update(details or {})
        super().__init__(f"{setting}={value!r}: {message}", details=merged)


__all__ = [
    "DbHooksError",
    "InternalError",
    "TransactionError",
    "ValidationError",
    "SerializationError",
    "NotFoundError",
    "ConflictError",
    "ContextError",
    "InvalidConfigurationError",
]
