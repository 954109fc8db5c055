"""Persistence layer: keyed repositories and key-value blob stores."""

from .repository import InMemoryRepository, Repository
from .store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore

__all__ = [
    "Repository",
    "InMemoryRepository",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SQLiteKeyValueStore",
]
