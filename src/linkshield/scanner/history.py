"""Per-URL safety history and degradation detection."""

import time
from collections.abc import Callable
from typing import Any, Optional

from ..storage.types import KeyValueStore, StorageError
from ..utils.logging import get_structured_logger
from .types import SafetyResult, SafetyStatus

logger = get_structured_logger(__name__)

HISTORY_KEY = "safetyHistory"
MAX_HISTORY_ENTRIES = 10

DEGRADED_STATUSES = frozenset({SafetyStatus.UNSAFE, SafetyStatus.WARNING})


class SafetyHistory:
    """Keeps the last few safety verdicts for every URL."""

    def __init__(
        self,
        store: KeyValueStore,
        max_entries: int = MAX_HISTORY_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_entries = max_entries
        self.clock = clock
        self._history: Optional[dict[str, list[dict[str, Any]]]] = None

    async def _load(self) -> dict[str, list[dict[str, Any]]]:
        if self._history is None:
            try:
                stored = await self.store.get_value(HISTORY_KEY)
            except StorageError as e:
                logger.error("Failed to load safety history", error=str(e))
                stored = None
            self._history = stored if isinstance(stored, dict) else {}
        return self._history

    async def get(self, url: str) -> list[dict[str, Any]]:
        history = await self._load()
        return list(history.get(url, []))

    async def record(self, url: str, result: SafetyResult) -> Optional[SafetyStatus]:
        """Append ``result``; return the previous status when this is a degradation."""
        history = await self._load()
        entries = history.setdefault(url, [])
        previous = SafetyStatus(entries[-1]["status"]) if entries else None

        entries.append(
            {
                "timestamp": self.clock(),
                "status": result.status.value,
                "sources": list(result.sources),
            }
        )
        del entries[: -self.max_entries]

        try:
            await self.store.set_value(HISTORY_KEY, history)
        except StorageError as e:
            logger.error("Failed to persist safety history", error=str(e))

        if previous is SafetyStatus.SAFE and result.status in DEGRADED_STATUSES:
            return previous
        return None
