"""Repository boundary."""

from .base import DatabaseRepository, Repository

__all__ = ["DatabaseRepository", "Repository"]
