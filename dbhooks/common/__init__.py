"""Shared utilities."""

from .context import GlobalContext

__all__ = ["GlobalContext"]
