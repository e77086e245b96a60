"""Storage module: the persisted key-value layer behind caches and engine state."""

from .interface import SQLiteKeyValueStore, create_key_value_store
from .memory import MemoryKeyValueStore
from .sqlite import CacheEntryRecord, DatabaseManager, StateEntryRecord
from .types import KeyValueStore, StorageError, StoredEntry

__all__ = [
    "KeyValueStore",
    "StoredEntry",
    "StorageError",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "create_key_value_store",
    "DatabaseManager",
    "CacheEntryRecord",
    "StateEntryRecord",
]
