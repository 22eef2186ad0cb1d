"""In-memory database."""

import copy
from typing import Any, Dict, List, Optional

from .database import Database, matches


class MemoryDB(Database):
    """Dictionary-backed database; records are deep-copied in and out."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    async def save(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if "id" not in data:
            raise KeyError("Document data must contain 'id' field")
        self._collections.setdefault(collection, {})[str(data["id"])] = copy.deepcopy(data)
        return data

    async def get(self, collection: str, id: str) -> Optional[Dict[str, Any]]:
        record = self._collections.get(collection, {}).get(str(id))
        return copy.deepcopy(record) if record is not None else None

    async def delete(self, collection: str, id: str) -> None:
        self._collections.get(collection, {}).pop(str(id), None)

    async def find(self, collection: str, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(record)
            for record in self._collections.get(collection, {}).values()
            if matches(record, query)
        ]

    async def clear(self, collection: Optional[str] = None) -> None:
        if collection is None:
            self._collections.clear()
        else:
            self._collections.pop(collection, None)
