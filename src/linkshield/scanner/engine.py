"""Scan engine facade: the single entry point used by the CLI and API."""

import asyncio
from collections.abc import Sequence
from typing import Any, Optional

import httpx

from ..config.loader import ConfigLoader
from ..config.settings import AppSettings, get_settings
from ..storage.interface import create_key_value_store
from ..storage.types import KeyValueStore
from ..utils.async_utils import (
    AsyncContextManager,
    ConcurrencyLimiter,
    create_task_with_error_handling,
)
from ..utils.logging import get_structured_logger
from .blocklist import BlocklistAggregator
from .bookmarks import BookmarkSource
from .cache import ResultCache
from .events import EventBus, Listener
from .heuristics import SuspiciousPatternChecker
from .history import SafetyHistory
from .link_checker import LinkChecker
from .orchestrator import ScanOrchestrator
from .reputation import ReputationCheck, build_reputation_checks
from .safety import SafetyEvaluator
from .types import (
    BlocklistStatus,
    BookmarkRef,
    LinkStatus,
    SafetyResult,
    SafetyStatus,
    ScanStartResult,
    ScanStatusSnapshot,
)
from .validator import ensure_valid_url, validate_url
from .whitelist import UserWhitelist

logger = get_structured_logger(__name__)

INVALID_URL_SOURCE = "Invalid URL"


class ScanEngine(AsyncContextManager):
    """Owns every engine component for the lifetime of the process.

    Components are built in ``setup`` from ``AppSettings``; tests can
    pass their own store, HTTP client and reputation checks.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        store: Optional[KeyValueStore] = None,
        client: Optional[httpx.AsyncClient] = None,
        bookmark_source: Optional[BookmarkSource] = None,
        reputation_checks: Optional[Sequence[ReputationCheck]] = None,
        config_loader: Optional[ConfigLoader] = None,
        refresh_on_startup: bool = False,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.client = client
        self.bookmark_source = bookmark_source
        self.config_loader = config_loader
        self.refresh_on_startup = refresh_on_startup
        self._reputation_checks = reputation_checks
        self._owns_client = client is None
        self._owns_store = store is None
        self._startup_refresh: Optional[asyncio.Task] = None
        self._initialized = False

        self.events = EventBus()
        self.limiter = ConcurrencyLimiter(self.settings.scan.max_concurrent)

    async def setup(self) -> None:
        if self._initialized:
            return

        logger.info("Initializing scan engine")

        if self.config_loader is not None:
            self.settings = self.config_loader.apply_to_settings(self.settings)
            trusted = self.config_loader.get_trusted_domains()
            whitelist_seed = self.config_loader.get_whitelist()
        else:
            trusted, whitelist_seed = [], []

        if self.store is None:
            self.store = await create_key_value_store(self.settings.database)
        if self.client is None:
            self.client = httpx.AsyncClient(
                headers={"User-Agent": self.settings.link_check.user_agent}
            )

        self.cache = ResultCache(self.store, ttl_seconds=self.settings.cache.ttl_days * 86400)
        self.blocklist = BlocklistAggregator(
            self.client, self.store, self.settings.blocklist, events=self.events
        )
        self.link_checker = LinkChecker(self.client, self.cache, self.settings.link_check)
        self.whitelist = UserWhitelist(self.store, seed=whitelist_seed)
        self.history = SafetyHistory(self.store)

        checks = self._reputation_checks
        if checks is None:
            checks = build_reputation_checks(self.client, self.settings.reputation)

        self.safety = SafetyEvaluator(
            self.cache,
            self.blocklist,
            reputation_checks=checks,
            heuristics=SuspiciousPatternChecker(self.client, self.settings.heuristics),
            whitelist=self.whitelist,
            history=self.history,
            events=self.events,
            trusted_domains=trusted,
        )
        self.orchestrator = ScanOrchestrator(
            self.check_link_status,
            self.check_url_safety,
            self.cache,
            self.limiter,
            blocklist=self.blocklist,
            events=self.events,
            settings=self.settings.scan,
            bookmark_source=self.bookmark_source,
            reset_detectors=self.safety.reset_detectors,
        )

        await self.blocklist.load_state()
        if self.refresh_on_startup and self.blocklist.is_stale():
            logger.info("Blocklist is stale on startup, refreshing in background")
            self._startup_refresh = create_task_with_error_handling(
                self.blocklist.ensure_ready(), task_name="startup_blocklist_refresh"
            )

        self._initialized = True
        logger.info("Scan engine ready")

    async def cleanup(self) -> None:
        if self._initialized and self.orchestrator.is_scanning:
            self.orchestrator.stop()
        if self._startup_refresh and not self._startup_refresh.done():
            self._startup_refresh.cancel()
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None
        if self._owns_store and hasattr(self.store, "cleanup"):
            await self.store.cleanup()
            self.store = None
        self._initialized = False
        logger.info("Scan engine stopped")

    async def check_link_status(self, url: str, bypass_cache: bool = False) -> LinkStatus:
        """Reachability status for one URL; never raises."""
        validation = validate_url(url)
        if not validation.valid:
            logger.debug("Rejected URL treated as dead", url=url, reason=validation.reason)
            if url:
                await self.cache.set_link(url, LinkStatus.DEAD)
            return LinkStatus.DEAD

        try:
            return await self.link_checker.check(url.strip(), bypass_cache)
        except Exception as e:
            logger.exception("Unexpected link check failure", url=url, error=str(e))
            return LinkStatus.DEAD

    async def check_url_safety(self, url: str, bypass_cache: bool = False) -> SafetyResult:
        """Safety verdict for one URL; never raises."""
        validation = validate_url(url)
        if not validation.valid:
            logger.debug("Rejected URL treated as unsafe", url=url, reason=validation.reason)
            result = SafetyResult(SafetyStatus.UNSAFE, [INVALID_URL_SOURCE])
            if url:
                await self.cache.set_safety(url, result)
            return result

        try:
            return await self.safety.evaluate(url.strip(), bypass_cache)
        except Exception as e:
            logger.exception("Unexpected safety check failure", url=url, error=str(e))
            return SafetyResult(SafetyStatus.UNKNOWN, [])

    async def start_scan(
        self,
        bookmarks: Optional[Sequence[Any]] = None,
        bypass_cache: bool = False,
        link_checking: Optional[bool] = None,
        safety_checking: Optional[bool] = None,
    ) -> ScanStartResult:
        refs = None if bookmarks is None else [self._as_ref(b) for b in bookmarks]
        return await self.orchestrator.start(
            refs,
            bypass_cache=bypass_cache,
            link_checking=link_checking,
            safety_checking=safety_checking,
        )

    def stop_scan(self) -> dict:
        return self.orchestrator.stop()

    def get_scan_status(self) -> ScanStatusSnapshot:
        return self.orchestrator.status()

    async def wait_for_scan(self) -> ScanStatusSnapshot:
        return await self.orchestrator.wait()

    async def refresh_blocklist(self) -> bool:
        return await self.blocklist.refresh()

    async def ensure_blocklist_ready(self) -> bool:
        return await self.blocklist.ensure_ready()

    def blocklist_status(self) -> BlocklistStatus:
        return self.blocklist.status()

    def lookup_blocklist(self, url: str) -> list[str]:
        """Blocklist sources flagging ``url``; raises ``ValidationRejection`` for bad input."""
        ensure_valid_url(url)
        return self.blocklist.lookup(url.strip())

    async def clear_cache(self, namespace: Optional[str] = None) -> int:
        return await self.cache.clear(namespace)

    async def add_to_whitelist(self, host: str) -> str:
        return await self.whitelist.add(host)

    async def remove_from_whitelist(self, host: str) -> bool:
        return await self.whitelist.remove(host)

    async def list_whitelist(self) -> list[str]:
        return await self.whitelist.list_hosts()

    async def get_safety_history(self, url: str) -> list[dict[str, Any]]:
        return await self.history.get(url)

    def subscribe(self, listener: Listener):
        return self.events.subscribe(listener)

    @staticmethod
    def _as_ref(bookmark: Any) -> BookmarkRef:
        if isinstance(bookmark, BookmarkRef):
            return bookmark
        if isinstance(bookmark, dict):
            return BookmarkRef(
                id=str(bookmark.get("id", "")),
                url=str(bookmark.get("url") or ""),
                title=str(bookmark.get("title") or ""),
            )
        raise TypeError(f"Unsupported bookmark type: {type(bookmark).__name__}")


# Global engine instance
_engine: Optional[ScanEngine] = None


async def get_engine() -> ScanEngine:
    """Get or create the global scan engine."""
    global _engine

    if _engine is None:
        settings = get_settings()
        loader = ConfigLoader(settings.config_file) if settings.config_file else ConfigLoader()
        _engine = ScanEngine(settings, config_loader=loader, refresh_on_startup=True)
        await _engine.setup()

    return _engine


async def cleanup_engine() -> None:
    """Clean up the global scan engine."""
    global _engine

    if _engine:
        await _engine.cleanup()
        _engine = None
