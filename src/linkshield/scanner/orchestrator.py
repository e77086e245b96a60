"""Background scan orchestration."""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Sequence
from typing import Optional

from ..config.settings import ScanSettings
from ..utils.async_utils import ConcurrencyLimiter, create_task_with_error_handling, run_with_timeout
from ..utils.logging import LoggingContextManager, get_structured_logger
from ..utils.types import AsyncTimeoutError
from .batcher import ResultBatcher
from .blocklist import BlocklistAggregator
from .bookmarks import BookmarkSource
from .cache import ResultCache
from .events import (
    SCAN_CANCELLED,
    SCAN_COMPLETE,
    SCAN_PROGRESS,
    SCAN_STARTED,
    SCAN_STATUS,
    EventBus,
)
from .types import (
    BookmarkRef,
    BookmarkScanResult,
    LinkStatus,
    SafetyResult,
    SafetyStatus,
    ScanPhase,
    ScanStartResult,
    ScanState,
    ScanStatusSnapshot,
)

logger = get_structured_logger(__name__)

LinkCheck = Callable[[str, bool], Awaitable[LinkStatus]]
SafetyCheck = Callable[[str, bool], Awaitable[SafetyResult]]

LOADING_DATABASE_MESSAGE = "Loading security database..."


def _unique(bookmarks: Sequence[BookmarkRef]) -> list[BookmarkRef]:
    seen: set[str] = set()
    unique = []
    for bookmark in bookmarks:
        if bookmark.url and bookmark.id not in seen:
            seen.add(bookmark.id)
            unique.append(bookmark)
    return unique


class ScanOrchestrator:
    """Drives bookmarks through link and safety checks in batches.

    Only one scan runs at a time. Batches run strictly one after another
    while the checks inside a batch run concurrently, each taking its own
    slot from the shared ``ConcurrencyLimiter``. Cancellation is observed
    between batches; checks already in flight always finish.
    """

    def __init__(
        self,
        check_link: LinkCheck,
        check_safety: SafetyCheck,
        cache: ResultCache,
        limiter: ConcurrencyLimiter,
        blocklist: Optional[BlocklistAggregator] = None,
        events: Optional[EventBus] = None,
        settings: Optional[ScanSettings] = None,
        bookmark_source: Optional[BookmarkSource] = None,
        reset_detectors: Optional[Callable[[], None]] = None,
    ):
        self.check_link = check_link
        self.check_safety = check_safety
        self.cache = cache
        self.limiter = limiter
        self.blocklist = blocklist
        self.events = events or EventBus()
        self.settings = settings or ScanSettings()
        self.bookmark_source = bookmark_source
        self.reset_detectors = reset_detectors

        self.phase = ScanPhase.IDLE
        self.state = ScanState()
        self.scan_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._link_enabled = True
        self._safety_enabled = True
        self._bypass_cache = False
        self._blocklist_wait: Optional[asyncio.Future] = None

    @property
    def is_scanning(self) -> bool:
        return self.phase is ScanPhase.RUNNING

    def status(self) -> ScanStatusSnapshot:
        return ScanStatusSnapshot(
            is_scanning=self.is_scanning,
            scanned=self.state.scanned,
            total=self.state.total,
            phase=self.phase,
        )

    async def start(
        self,
        bookmarks: Optional[Sequence[BookmarkRef]] = None,
        bypass_cache: bool = False,
        link_checking: Optional[bool] = None,
        safety_checking: Optional[bool] = None,
    ) -> ScanStartResult:
        """Begin a background scan; rejected while another is running."""
        if self.is_scanning:
            logger.info("Scan already in progress")
            return ScanStartResult(success=False, message="Scan already in progress")

        link_enabled = self.settings.link_checking_enabled if link_checking is None else link_checking
        safety_enabled = (
            self.settings.safety_checking_enabled if safety_checking is None else safety_checking
        )
        if not link_enabled and not safety_enabled:
            return ScanStartResult(
                success=False, message="Link and safety checking are both disabled"
            )

        self.phase = ScanPhase.RUNNING
        # A stop issued while preparing lands on this state
        state = self.state = ScanState()
        try:
            if self.reset_detectors:
                self.reset_detectors()

            if bypass_cache:
                logger.info("Bypassing cache for rescan")
                await self.cache.clear()

            if safety_enabled:
                await self._ensure_blocklist()

            if bookmarks is None and not state.cancelled:
                if self.bookmark_source is None:
                    raise ValueError("No bookmarks given and no bookmark source configured")
                bookmarks = await self.bookmark_source.load()
        except Exception as e:
            logger.error("Error starting scan", error=str(e))
            self.phase = ScanPhase.IDLE
            return ScanStartResult(success=False, message=str(e))

        if state.cancelled:
            logger.info("Scan cancelled before dispatch")
            self._finish(state)
            return ScanStartResult(success=False, message="Scan cancelled")

        queue = _unique(bookmarks)
        state.queue = queue
        state.total = len(queue)
        self._link_enabled = link_enabled
        self._safety_enabled = safety_enabled
        self._bypass_cache = bypass_cache
        self.scan_id = uuid.uuid4().hex[:12]

        logger.info("Starting scan", scan_id=self.scan_id, total=len(queue))
        self.events.emit(SCAN_STARTED, total=len(queue))

        self._task = create_task_with_error_handling(
            self._process_queue(self.scan_id), task_name=f"scan_{self.scan_id}"
        )
        return ScanStartResult(success=True, total=len(queue))

    def stop(self) -> dict:
        """Request cooperative cancellation of the running scan."""
        if not self.is_scanning:
            return {"success": False, "message": "No scan in progress"}
        logger.info("Cancelling scan", scan_id=self.scan_id)
        self.state.cancelled = True
        if self._blocklist_wait is not None:
            self._blocklist_wait.cancel()
        return {"success": True}

    async def wait(self) -> ScanStatusSnapshot:
        """Wait for the current scan task to finish."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.status()

    async def _ensure_blocklist(self) -> None:
        if self.blocklist is None:
            return
        if not (self.blocklist.loading or self.blocklist.is_stale()):
            return

        self.events.emit(SCAN_STATUS, message=LOADING_DATABASE_MESSAGE)
        # stop() cancels only this wait; the shared refresh keeps running
        self._blocklist_wait = asyncio.ensure_future(
            run_with_timeout(
                self.blocklist.ensure_ready(),
                self.settings.blocklist_ready_timeout,
                "Timed out waiting for blocklist database",
            )
        )
        try:
            ready = await self._blocklist_wait
        except AsyncTimeoutError:
            ready = False
        except asyncio.CancelledError:
            if not self.state.cancelled:
                raise
            logger.info("Scan stopped while waiting for blocklist database")
            return
        finally:
            self._blocklist_wait = None
        if not ready:
            logger.warning("Blocklist database unavailable, continuing scan")

    async def _process_queue(self, scan_id: str) -> None:
        with LoggingContextManager(scan_id=scan_id):
            state = self.state
            batcher = ResultBatcher(
                self.events,
                batch_size=self.settings.result_batch_size,
                flush_timeout=self.settings.result_flush_timeout,
            )
            try:
                while state.queue and not state.cancelled:
                    batch = state.queue[: self.settings.batch_size]
                    del state.queue[: self.settings.batch_size]

                    await asyncio.gather(
                        *(self._scan_bookmark(bookmark, batcher) for bookmark in batch)
                    )

                    if state.queue and not state.cancelled:
                        await asyncio.sleep(self.settings.batch_delay)
            finally:
                batcher.flush()
                self._finish(state)

    def _finish(self, state: ScanState) -> None:
        cancelled = state.cancelled
        self.phase = ScanPhase.CANCELLED if cancelled else ScanPhase.COMPLETED
        state.queue.clear()
        state.seen.clear()

        logger.info(
            "Scan cancelled" if cancelled else "Scan complete",
            scanned=state.scanned,
            total=state.total,
        )
        self.events.emit(
            SCAN_CANCELLED if cancelled else SCAN_COMPLETE,
            scanned=state.scanned,
            total=state.total,
        )

    async def _scan_bookmark(self, bookmark: BookmarkRef, batcher: ResultBatcher) -> None:
        state = self.state
        if bookmark.id in state.seen:
            return
        state.seen.add(bookmark.id)

        result = BookmarkScanResult(id=bookmark.id, url=bookmark.url)
        checks = {}
        if self._link_enabled:
            checks["link"] = self._run_link(bookmark.url, result)
        if self._safety_enabled:
            checks["safety"] = self._run_safety(bookmark.url, result)

        outcomes = await asyncio.gather(*checks.values(), return_exceptions=True)
        for kind, outcome in zip(checks, outcomes):
            if not isinstance(outcome, Exception):
                continue
            logger.error(
                "Error checking bookmark", bookmark_id=bookmark.id, check=kind, error=str(outcome)
            )
            if kind == "link":
                result.link_status = LinkStatus.DEAD
            else:
                result.safety_status = SafetyStatus.UNKNOWN
                result.safety_sources = []

        state.scanned += 1
        self.events.emit(SCAN_PROGRESS, scanned=state.scanned, total=state.total)
        batcher.add(result.to_dict())

    async def _run_link(self, url: str, result: BookmarkScanResult) -> None:
        result.link_status = await self.limiter.run(
            lambda: self.check_link(url, self._bypass_cache)
        )

    async def _run_safety(self, url: str, result: BookmarkScanResult) -> None:
        safety = await self.limiter.run(lambda: self.check_safety(url, self._bypass_cache))
        result.safety_status = safety.status
        result.safety_sources = list(safety.sources)
