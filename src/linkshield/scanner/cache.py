"""Result cache with TTL expiry and per-namespace write serialization."""

import asyncio
import time
from collections.abc import Callable
from typing import Optional, Union

from ..storage.types import KeyValueStore, StorageError
from ..utils.logging import get_structured_logger
from .types import LinkStatus, SafetyResult

logger = get_structured_logger(__name__)

LINK_NAMESPACE = "linkStatusCache"
SAFETY_NAMESPACE = "safetyStatusCache"
NAMESPACES = (LINK_NAMESPACE, SAFETY_NAMESPACE)

DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60

CachedResult = Union[LinkStatus, SafetyResult]


def _encode(result: CachedResult) -> dict:
    if isinstance(result, SafetyResult):
        return result.to_payload()
    return {"kind": "link", "status": LinkStatus(result).value}


def _decode(payload: dict) -> Optional[CachedResult]:
    kind = payload.get("kind")
    if kind == "link":
        return LinkStatus(payload["status"])
    if kind == "safety":
        return SafetyResult.from_payload(payload)
    return None


class ResultCache:
    """URL-keyed cache of link and safety verdicts.

    Entries expire lazily: a read at or past the TTL is a miss, but the
    entry stays in the store until it is overwritten or the namespace is
    cleared.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._locks = {namespace: asyncio.Lock() for namespace in NAMESPACES}

    def _lock_for(self, namespace: str) -> asyncio.Lock:
        lock = self._locks.get(namespace)
        if lock is None:
            lock = self._locks[namespace] = asyncio.Lock()
        return lock

    async def get(self, key: str, namespace: str) -> Optional[CachedResult]:
        """Cached result for ``key``, or None when absent or expired."""
        try:
            entry = await self.store.get_entry(namespace, key)
        except StorageError as e:
            logger.warning("Cache read error", namespace=namespace, error=str(e))
            return None

        if entry is None:
            return None
        if self.clock() - entry.timestamp >= self.ttl_seconds:
            return None

        try:
            return _decode(entry.payload)
        except (KeyError, ValueError) as e:
            logger.warning("Discarding malformed cache entry", namespace=namespace, error=str(e))
            return None

    async def set(self, key: str, result: CachedResult, namespace: str) -> None:
        """Store ``result`` under ``key`` with a fresh timestamp."""
        payload = _encode(result)
        async with self._lock_for(namespace):
            try:
                await self.store.put_entry(namespace, key, payload, self.clock())
            except StorageError as e:
                logger.warning("Cache write error", namespace=namespace, error=str(e))

    async def get_link(self, url: str) -> Optional[LinkStatus]:
        result = await self.get(url, LINK_NAMESPACE)
        return result if isinstance(result, LinkStatus) else None

    async def set_link(self, url: str, status: LinkStatus) -> None:
        await self.set(url, status, LINK_NAMESPACE)

    async def get_safety(self, url: str) -> Optional[SafetyResult]:
        result = await self.get(url, SAFETY_NAMESPACE)
        return result if isinstance(result, SafetyResult) else None

    async def set_safety(self, url: str, result: SafetyResult) -> None:
        await self.set(url, result, SAFETY_NAMESPACE)

    async def clear(self, namespace: Optional[str] = None) -> int:
        """Drop one namespace, or both when none is given."""
        removed = 0
        for name in [namespace] if namespace else NAMESPACES:
            async with self._lock_for(name):
                removed += await self.store.clear_namespace(name)
        logger.info("Result cache cleared", namespace=namespace or "all", removed=removed)
        return removed

    async def size(self, namespace: str) -> int:
        return await self.store.count_entries(namespace)
