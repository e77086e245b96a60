"""Threat blocklist aggregation: download, parse, merge and look up."""

import asyncio
import json
import re
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Optional
from urllib.parse import urlsplit

import httpx

from ..config.settings import BlocklistSettings, BlocklistSourceConfig
from ..storage.types import KeyValueStore, StorageError
from ..utils.logging import get_structured_logger
from .events import BLOCKLIST_COMPLETE, BLOCKLIST_PROGRESS, EventBus
from .types import BlocklistStatus, SourceDownloadFailure

logger = get_structured_logger(__name__)

LAST_UPDATE_KEY = "blocklistLastUpdate"

_SCHEME_PREFIX = re.compile(r"^https?://")
_WILDCARD_PREFIX = re.compile(r"^\*\.")


def normalize_entry(value: str) -> str:
    """Lowercase and strip scheme, trailing slash and leading wildcard.

    Stripping repeats until nothing changes so that normalizing an
    already-normalized entry is a no-op.
    """
    normalized = value.lower()
    while True:
        previous = normalized
        normalized = _SCHEME_PREFIX.sub("", normalized)
        if normalized.endswith("/"):
            normalized = normalized[:-1]
        normalized = _WILDCARD_PREFIX.sub("", normalized)
        if normalized == previous:
            return normalized


def normalize_lookup_url(url: str) -> str:
    """Blocklist key for a bookmark URL: no scheme, no trailing slash."""
    normalized = _SCHEME_PREFIX.sub("", url.lower())
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def parse_blocklist_line(line: str, fmt: str) -> Optional[str]:
    """Extract one normalized entry from a blocklist line, or None to skip it.

    ``hosts`` lines take the second whitespace-separated token,
    ``urlhaus_text`` lines must be full http(s) URLs and yield only the
    hostname, and ``domains`` (or any unrecognised format) use the line
    as-is.
    """
    trimmed = line.strip()
    if not trimmed or trimmed.startswith("#") or trimmed.startswith("!"):
        return None

    if fmt == "hosts":
        parts = trimmed.split()
        domain = parts[1] if len(parts) >= 2 else None
    elif fmt == "urlhaus_text":
        if not (trimmed.startswith("http://") or trimmed.startswith("https://")):
            return None
        try:
            domain = urlsplit(trimmed).hostname
        except ValueError:
            return None
    else:
        domain = trimmed

    if not domain:
        return None

    normalized = normalize_entry(domain)
    if (
        not normalized
        or normalized == "localhost"
        or normalized.startswith("127.")
        or normalized.startswith("0.0.0.0")
    ):
        return None
    return normalized


def unwrap_body(text: str) -> str:
    """Unwrap proxy responses that carry the list inside a JSON object."""
    stripped = text.lstrip()
    if not stripped.startswith("{"):
        return text
    try:
        data = json.loads(stripped)
    except ValueError:
        return text
    if isinstance(data, dict):
        for key in ("contents", "data"):
            if isinstance(data.get(key), str) and data[key]:
                return data[key]
    return text


@dataclass(frozen=True)
class BlocklistIndex:
    """Immutable snapshot of every known-bad entry and its attribution."""

    exact_entries: frozenset = frozenset()
    source_of: Mapping[str, tuple] = field(default_factory=lambda: MappingProxyType({}))
    path_index: Mapping[str, tuple] = field(default_factory=lambda: MappingProxyType({}))
    total_entries: int = 0

    def __len__(self) -> int:
        return len(self.exact_entries)

    @property
    def is_empty(self) -> bool:
        return not self.exact_entries

    def lookup(self, url: str) -> list[str]:
        """Sources flagging ``url``: full URL first, then host, then host:port with path."""
        normalized = normalize_lookup_url(url)
        domain = normalized.split("/", 1)[0]

        if normalized in self.exact_entries:
            return list(self.source_of.get(normalized, ()))
        if domain in self.exact_entries:
            return list(self.source_of.get(domain, ()))
        if domain in self.path_index:
            return list(self.path_index[domain])
        return []


def build_index(results: Iterable[tuple[str, Sequence[str]]]) -> BlocklistIndex:
    """Merge per-source entry lists into a fresh index."""
    exact: set[str] = set()
    source_of: dict[str, list[str]] = {}
    path_index: dict[str, list[str]] = {}
    total = 0

    for source_name, entries in results:
        total += len(entries)
        for entry in entries:
            exact.add(entry)
            sources = source_of.setdefault(entry, [])
            if source_name not in sources:
                sources.append(source_name)

            domain_part = entry.split("/", 1)[0]
            if domain_part != entry:
                path_sources = path_index.setdefault(domain_part, [])
                if source_name not in path_sources:
                    path_sources.append(source_name)

    return BlocklistIndex(
        exact_entries=frozenset(exact),
        source_of=MappingProxyType({k: tuple(v) for k, v in source_of.items()}),
        path_index=MappingProxyType({k: tuple(v) for k, v in path_index.items()}),
        total_entries=total,
    )


class BlocklistAggregator:
    """Maintains the blocklist index for safety evaluations.

    Refreshes download every configured source in order and swap the new
    index in with a single assignment, so readers see either the previous
    snapshot or the complete new one. Concurrent refresh requests join
    the one already in flight.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: KeyValueStore,
        settings: Optional[BlocklistSettings] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.store = store
        self.settings = settings or BlocklistSettings()
        self.events = events or EventBus()
        self.clock = clock
        self._index = BlocklistIndex()
        self._last_update: Optional[float] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def index(self) -> BlocklistIndex:
        return self._index

    @property
    def sources(self) -> list[BlocklistSourceConfig]:
        return self.settings.sources

    @property
    def last_update(self) -> Optional[float]:
        return self._last_update

    @property
    def loading(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def load_state(self) -> None:
        """Restore the last refresh instant from the store."""
        try:
            value = await self.store.get_value(LAST_UPDATE_KEY)
        except StorageError as e:
            logger.error("Failed to load blocklist timestamp", error=str(e))
            return
        if value:
            self._last_update = float(value)
            logger.info(
                "Loaded blocklist timestamp",
                last_update=datetime.fromtimestamp(self._last_update).isoformat(),
            )

    def is_stale(self, now: Optional[float] = None) -> bool:
        """Due when the index is empty or was last refreshed on another day."""
        if self._index.is_empty or not self._last_update:
            return True
        now = self.clock() if now is None else now
        last_day = datetime.fromtimestamp(self._last_update).date()
        return last_day != datetime.fromtimestamp(now).date()

    def lookup(self, url: str) -> list[str]:
        return self._index.lookup(url)

    def status(self) -> BlocklistStatus:
        return BlocklistStatus(
            domains=len(self._index),
            last_update=self._last_update,
            loading=self.loading,
            sources=len(self.sources),
        )

    async def refresh(self) -> bool:
        """Rebuild the index from every source, joining any refresh in flight."""
        if self.loading:
            logger.info("Blocklist refresh already in progress, waiting")
        else:
            self._refresh_task = asyncio.create_task(self._run_refresh())
            self._refresh_task.set_name("blocklist_refresh")
        return await asyncio.shield(self._refresh_task)

    async def ensure_ready(self) -> bool:
        """Refresh only when stale; waits for an in-flight refresh either way."""
        if self.loading:
            return await asyncio.shield(self._refresh_task)
        if self.is_stale():
            return await self.refresh()
        return True

    async def download_source(self, source: BlocklistSourceConfig) -> list[str]:
        """Entries from one source; a failed source contributes nothing."""
        try:
            text = await self._fetch(source)
        except SourceDownloadFailure as e:
            logger.error("Blocklist source failed", source=source.name, error=str(e))
            return []

        entries = []
        for line in unwrap_body(text).split("\n"):
            entry = parse_blocklist_line(line, source.format)
            if entry:
                entries.append(entry)

        logger.info(
            "Blocklist source loaded",
            source=source.name,
            bytes=len(text),
            entries=len(entries),
        )
        return entries

    async def _fetch(self, source: BlocklistSourceConfig) -> str:
        try:
            response = await self.client.get(
                source.url,
                timeout=self.settings.download_timeout,
                headers={"Cache-Control": "no-store"},
                follow_redirects=True,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SourceDownloadFailure(source.name, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            raise SourceDownloadFailure(source.name, f"HTTP {response.status_code}")
        return response.text

    async def _run_refresh(self) -> bool:
        sources = list(self.sources)
        total = len(sources)
        logger.info("Starting blocklist update", sources=total)

        try:
            self.events.emit(BLOCKLIST_PROGRESS, current=0, total=total, status="starting")

            results = []
            for position, source in enumerate(sources, start=1):
                self.events.emit(
                    BLOCKLIST_PROGRESS,
                    current=position,
                    total=total,
                    sourceName=source.name,
                    status="downloading",
                )
                results.append((source.name, await self.download_source(source)))

            index = build_index(results)
            self._index = index
            self._last_update = self.clock()

            try:
                await self.store.set_value(LAST_UPDATE_KEY, self._last_update)
            except StorageError as e:
                logger.error("Failed to persist blocklist timestamp", error=str(e))

            logger.info(
                "Blocklist database updated",
                domains=len(index),
                total_entries=index.total_entries,
                sources=total,
            )
            self.events.emit(
                BLOCKLIST_COMPLETE,
                domains=len(index),
                totalEntries=index.total_entries,
                sources=total,
            )
            return True
        except Exception as e:
            logger.exception("Error updating blocklist database", error=str(e))
            return False
