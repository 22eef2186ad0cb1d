"""JSON file-based database."""

import asyncio
import contextlib
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from .database import Database, matches

logger = logging.getLogger(__name__)


class JsonDB(Database):
    """One JSON file per record, with an mtime-validated read cache."""

    def __init__(self, base_path: str = "dbhooks_db", cache_size: int = 500) -> None:
        """Initialize JSON database.

        Args:
            base_path: Base directory for JSON files
            cache_size: Maximum number of documents to cache. Set to 0 to
                disable caching.
        """
        self.base_path = Path(base_path).resolve()
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"Cannot create database directory {base_path}: {e}") from e
        self._lock: Optional[asyncio.Lock] = None
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._cache_mtime: Dict[str, float] = {}
        self._cache_size = cache_size

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the async lock lazily."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _get_collection_path(self, collection: str) -> Path:
        """Get path for collection directory.

        Raises:
            ValueError: If collection name is invalid
            RuntimeError: If directory cannot be created
        """
        if not collection or "/" in collection or "\\" in collection or collection.startswith("."):
            raise ValueError(f"Invalid collection name: {collection}")

        path = self.base_path / collection
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"Cannot create collection directory {path}: {e}") from e
        return path

    def _get_file_path(self, collection: str, id: str) -> Path:
        """Get file path for a document.

        Raises:
            ValueError: If id contains invalid characters
        """
        id = str(id)
        if not id or "/" in id or "\\" in id or id.startswith("."):
            raise ValueError(f"Invalid document ID: {id}")
        return self._get_collection_path(collection) / f"{id}.json"

    def _evict(self, cache_key: str) -> None:
        self._cache.pop(cache_key, None)
        self._cache_mtime.pop(cache_key, None)

    async def save(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Save document to JSON file.

        Raises:
            KeyError: If document data lacks required 'id' field
            ValueError: If collection name or document ID is invalid
            RuntimeError: If file cannot be written
        """
        if "id" not in data:
            raise KeyError("Document data must contain 'id' field")

        file_path = self._get_file_path(collection, data["id"])
        async with self._get_lock():
            try:
                with open(file_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
            except OSError as e:
                raise RuntimeError(f"Cannot write to file {file_path}: {e}") from e
            except (TypeError, ValueError) as e:
                raise RuntimeError(f"Cannot serialize data to JSON: {e}") from e
            self._evict(f"{collection}:{data['id']}")
        return data

    async def get(self, collection: str, id: str) -> Optional[Dict[str, Any]]:
        """Get document by ID with caching."""
        try:
            file_path = self._get_file_path(collection, id)
        except ValueError:
            return None

        cache_key = f"{collection}:{id}"
        if not file_path.exists():
            self._evict(cache_key)
            return None

        if self._cache_size > 0 and cache_key in self._cache:
            try:
                if self._cache_mtime.get(cache_key) == file_path.stat().st_mtime:
                    return dict(self._cache[cache_key])
            except OSError:
                self._evict(cache_key)

        async with self._get_lock():
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    result = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable document {file_path}: {e}")
                return None
            if not isinstance(result, dict):
                return None
            if self._cache_size > 0:
                if len(self._cache) >= self._cache_size:
                    self._evict(next(iter(self._cache)))
                self._cache[cache_key] = result
                self._cache_mtime[cache_key] = file_path.stat().st_mtime
            return dict(result)

    async def delete(self, collection: str, id: str) -> None:
        """Delete document by ID."""
        try:
            file_path = self._get_file_path(collection, id)
        except ValueError:
            return

        async with self._get_lock():
            self._evict(f"{collection}:{id}")
            with contextlib.suppress(FileNotFoundError):
                file_path.unlink()

    async def find(self, collection: str, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find documents whose fields equal every value in ``query``."""
        try:
            collection_path = self._get_collection_path(collection)
        except (ValueError, RuntimeError):
            return []

        results = []
        for file_path in sorted(collection_path.glob("*.json")):
            try:
                async with self._get_lock():
                    with open(file_path, "r", encoding="utf-8") as f:
                        doc = json.load(f)
            except (json.JSONDecodeError, OSError):
                continue
            if isinstance(doc, dict) and "id" in doc and matches(doc, query):
                results.append(doc)
        return results

    async def clear(self, collection: Optional[str] = None) -> None:
        """Remove collection directories."""
        async with self._get_lock():
            self._cache.clear()
            self._cache_mtime.clear()
            targets = [self.base_path / collection] if collection else list(self.base_path.iterdir())
            for target in targets:
                if target.is_dir():
                    shutil.rmtree(target, ignore_errors=True)
