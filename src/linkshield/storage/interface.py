"""SQLAlchemy-backed key-value store and store factory."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import delete, func, select

from ..config.settings import DatabaseSettings
from ..utils.async_utils import AsyncContextManager
from ..utils.logging import get_structured_logger
from .memory import MemoryKeyValueStore
from .sqlite import CacheEntryRecord, DatabaseManager, StateEntryRecord
from .types import KeyValueStore, StorageError, StoredEntry

logger = get_structured_logger(__name__)


class SQLiteKeyValueStore(AsyncContextManager):
    """Key-value store persisted through an async SQLAlchemy engine."""

    def __init__(self, settings: DatabaseSettings):
        self.db_manager = DatabaseManager(settings)

    async def setup(self) -> None:
        await self.db_manager.setup()

    async def cleanup(self) -> None:
        await self.db_manager.cleanup()

    async def get_entry(self, namespace: str, key: str) -> Optional[StoredEntry]:
        try:
            async with self.db_manager.get_session() as session:
                record = await session.get(CacheEntryRecord, (namespace, key))
                if record is None:
                    return None
                return StoredEntry(payload=record.payload, timestamp=record.timestamp)
        except Exception as e:
            raise StorageError(f"Failed to read {namespace}/{key}: {str(e)}") from e

    async def put_entry(
        self, namespace: str, key: str, payload: dict[str, Any], timestamp: float
    ) -> None:
        try:
            async with self.db_manager.get_session() as session:
                await session.merge(
                    CacheEntryRecord(
                        namespace=namespace, key=key, payload=payload, timestamp=timestamp
                    )
                )
        except Exception as e:
            raise StorageError(f"Failed to write {namespace}/{key}: {str(e)}") from e

    async def clear_namespace(self, namespace: str) -> int:
        try:
            async with self.db_manager.get_session() as session:
                result = await session.execute(
                    delete(CacheEntryRecord).where(CacheEntryRecord.namespace == namespace)
                )
                removed = result.rowcount or 0
        except Exception as e:
            raise StorageError(f"Failed to clear {namespace}: {str(e)}") from e

        logger.info("Cache namespace cleared", namespace=namespace, removed=removed)
        return removed

    async def count_entries(self, namespace: str) -> int:
        try:
            async with self.db_manager.get_session() as session:
                result = await session.execute(
                    select(func.count())
                    .select_from(CacheEntryRecord)
                    .where(CacheEntryRecord.namespace == namespace)
                )
                return result.scalar() or 0
        except Exception as e:
            raise StorageError(f"Failed to count {namespace}: {str(e)}") from e

    async def get_value(self, key: str) -> Any:
        try:
            async with self.db_manager.get_session() as session:
                record = await session.get(StateEntryRecord, key)
                return record.value if record else None
        except Exception as e:
            raise StorageError(f"Failed to read state {key}: {str(e)}") from e

    async def set_value(self, key: str, value: Any) -> None:
        try:
            async with self.db_manager.get_session() as session:
                await session.merge(StateEntryRecord(key=key, value=value))
        except Exception as e:
            raise StorageError(f"Failed to write state {key}: {str(e)}") from e

    async def delete_value(self, key: str) -> None:
        try:
            async with self.db_manager.get_session() as session:
                await session.execute(
                    delete(StateEntryRecord).where(StateEntryRecord.key == key)
                )
        except Exception as e:
            raise StorageError(f"Failed to delete state {key}: {str(e)}") from e


async def create_key_value_store(
    settings: DatabaseSettings, ephemeral: bool = False
) -> KeyValueStore:
    """Build the configured store, ready for use."""
    if ephemeral:
        return MemoryKeyValueStore()

    store = SQLiteKeyValueStore(settings)
    await store.setup()
    return store
