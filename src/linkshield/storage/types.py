"""Type definitions for storage components."""

from dataclasses import dataclass
from typing import Any, Optional, Protocol


class StorageError(Exception):
    """Base exception for storage-related errors."""

    pass


@dataclass
class StoredEntry:
    """A namespaced payload with the instant it was written (epoch seconds)."""

    payload: dict[str, Any]
    timestamp: float


class KeyValueStore(Protocol):
    """Host persistence layer: namespaced entry maps plus scalar state keys."""

    async def get_entry(self, namespace: str, key: str) -> Optional[StoredEntry]:
        """Read one entry from a namespace."""
        ...

    async def put_entry(
        self, namespace: str, key: str, payload: dict[str, Any], timestamp: float
    ) -> None:
        """Insert or replace one entry in a namespace."""
        ...

    async def clear_namespace(self, namespace: str) -> int:
        """Remove every entry in a namespace, returning how many were removed."""
        ...

    async def count_entries(self, namespace: str) -> int:
        """Number of entries stored in a namespace."""
        ...

    async def get_value(self, key: str) -> Any:
        """Read a scalar state value, None when absent."""
        ...

    async def set_value(self, key: str, value: Any) -> None:
        """Write a JSON-serialisable scalar state value."""
        ...

    async def delete_value(self, key: str) -> None:
        """Remove a scalar state value."""
        ...
