"""SQLite database storage module."""

from .database import DatabaseManager, to_async_url
from .models import Base, CacheEntryRecord, StateEntryRecord

__all__ = [
    "DatabaseManager",
    "to_async_url",
    "Base",
    "CacheEntryRecord",
    "StateEntryRecord",
]
