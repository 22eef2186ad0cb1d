"""Database abstraction used by ``DatabaseRepository``."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


def matches(document: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    """Equality match of every filter key against a document."""
    return all(document.get(key) == value for key, value in filters.items())


class Database(ABC):
    """Abstract base class for database adapters.

    Records are dictionaries keyed by their ``id`` field and grouped in
    collections. Only equality filtering is supported.
    """

    @abstractmethod
    async def save(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Save a record, replacing any record with the same ``id``.

        Args:
            collection: Collection name
            data: Record data, including an ``id`` field

        Returns:
            Saved record
        """

    @abstractmethod
    async def get(self, collection: str, id: str) -> Optional[Dict[str, Any]]:
        """Retrieve a record by ID.

        Returns:
            Record data or None if not found
        """

    @abstractmethod
    async def delete(self, collection: str, id: str) -> None:
        """Delete a record by ID (missing records are ignored)."""

    @abstractmethod
    async def find(self, collection: str, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose fields equal every value in ``query``.

        Args:
            collection: Collection name
            query: Field/value pairs (empty dict for all records)
        """

    async def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Find the first record matching ``query``."""
        results = await self.find(collection, query)
        return results[0] if results else None

    async def count(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        """Count records matching ``query``."""
        return len(await self.find(collection, query or {}))

    @abstractmethod
    async def clear(self, collection: Optional[str] = None) -> None:
        """Remove every record of ``collection``, or of all collections."""
