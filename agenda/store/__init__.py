"""
agenda/store: the Store interface and its SQLite backend.
"""

from agenda.store.base import Store
from agenda.store.sqlite_store import SQLiteStore

__all__ = [
    "Store",
    "SQLiteStore",
]
