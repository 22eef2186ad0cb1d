"""Storage collaborators for repositories."""

from .database import Database
from .factory import get_database, list_available_databases, register_database, unregister_database
from .jsondb import JsonDB
from .memory import MemoryDB

__all__ = [
    "Database",
    "JsonDB",
    "MemoryDB",
    "get_database",
    "list_available_databases",
    "register_database",
    "unregister_database",
]
