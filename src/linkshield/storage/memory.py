"""Process-local key-value store."""

import copy
from typing import Any, Optional

from .types import StoredEntry


class MemoryKeyValueStore:
    """In-memory store for tests and ephemeral runs.

    Payloads are deep-copied on the way in and out so callers can never
    mutate stored state by holding a reference.
    """

    def __init__(self):
        self._entries: dict[str, dict[str, StoredEntry]] = {}
        self._values: dict[str, Any] = {}

    async def get_entry(self, namespace: str, key: str) -> Optional[StoredEntry]:
        entry = self._entries.get(namespace, {}).get(key)
        if entry is None:
            return None
        return StoredEntry(payload=copy.deepcopy(entry.payload), timestamp=entry.timestamp)

    async def put_entry(
        self, namespace: str, key: str, payload: dict[str, Any], timestamp: float
    ) -> None:
        self._entries.setdefault(namespace, {})[key] = StoredEntry(
            payload=copy.deepcopy(payload), timestamp=timestamp
        )

    async def clear_namespace(self, namespace: str) -> int:
        removed = self._entries.pop(namespace, {})
        return len(removed)

    async def count_entries(self, namespace: str) -> int:
        return len(self._entries.get(namespace, {}))

    async def get_value(self, key: str) -> Any:
        return copy.deepcopy(self._values.get(key))

    async def set_value(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)

    async def delete_value(self, key: str) -> None:
        self._values.pop(key, None)
