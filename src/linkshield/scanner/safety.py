"""Safety evaluation pipeline."""

import asyncio
from collections.abc import Iterable, Sequence
from typing import Optional

from ..utils.logging import get_structured_logger
from .blocklist import BlocklistAggregator
from .cache import ResultCache
from .domains import hostname_of, is_trusted_domain
from .events import SECURITY_ALERT, EventBus
from .heuristics import SuspiciousPatternChecker
from .history import SafetyHistory
from .reputation import ReputationCheck
from .types import SafetyResult, SafetyStatus, worst_status
from .validator import privileged_label
from .whitelist import UserWhitelist

logger = get_structured_logger(__name__)

WHITELISTED_SOURCE = "Whitelisted by user"
NOT_SCANNED_SUFFIX = " (not scanned)"


def _dedupe(sources: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(sources))


class SafetyEvaluator:
    """Reduces blocklist, reputation and heuristic findings to one verdict.

    Every enabled layer runs on every evaluation; the final status is the
    most severe definite finding and ``sources`` names every layer that
    contributed to it.
    """

    def __init__(
        self,
        cache: ResultCache,
        blocklist: BlocklistAggregator,
        reputation_checks: Sequence[ReputationCheck] = (),
        heuristics: Optional[SuspiciousPatternChecker] = None,
        whitelist: Optional[UserWhitelist] = None,
        history: Optional[SafetyHistory] = None,
        events: Optional[EventBus] = None,
        trusted_domains: Iterable[str] = (),
    ):
        self.cache = cache
        self.blocklist = blocklist
        self.reputation_checks = list(reputation_checks)
        self.heuristics = heuristics or SuspiciousPatternChecker()
        self.whitelist = whitelist
        self.history = history
        self.events = events or EventBus()
        self.trusted_domains = tuple(trusted_domains)
        self._pending: dict[str, asyncio.Task] = {}

    def reset_detectors(self) -> None:
        """Clear per-scan detector state such as rate-limit flags."""
        for check in self.reputation_checks:
            check.reset()

    async def evaluate(self, url: str, bypass_cache: bool = False) -> SafetyResult:
        label = privileged_label(url)
        if label:
            result = SafetyResult(SafetyStatus.SAFE, [label + NOT_SCANNED_SUFFIX])
            await self.cache.set_safety(url, result)
            return result

        if self.whitelist and await self.whitelist.contains(hostname_of(url)):
            return SafetyResult(SafetyStatus.SAFE, [WHITELISTED_SOURCE])

        if not bypass_cache:
            cached = await self.cache.get_safety(url)
            if cached is not None:
                return cached

        # Concurrent callers for the same URL share a single evaluation
        task = self._pending.get(url)
        if task is None:
            task = asyncio.create_task(self._evaluate_and_store(url))
            self._pending[url] = task
            task.add_done_callback(lambda _: self._pending.pop(url, None))
        return await asyncio.shield(task)

    async def _evaluate_and_store(self, url: str) -> SafetyResult:
        try:
            result = await self._run_layers(url)
        except Exception as e:
            logger.exception("Safety evaluation failed", url=url, error=str(e))
            result = SafetyResult(SafetyStatus.UNKNOWN, [])

        await self.cache.set_safety(url, result)
        logger.debug("Safety verdict", url=url, status=result.status.value, sources=result.sources)

        if self.history is not None:
            previous = await self.history.record(url, result)
            if previous is not None:
                logger.warning(
                    "Security status degraded",
                    url=url,
                    previous=previous.value,
                    status=result.status.value,
                )
                self.events.emit(
                    SECURITY_ALERT,
                    url=url,
                    host=hostname_of(url),
                    previousStatus=previous.value,
                    status=result.status.value,
                    sources=list(result.sources),
                )
        return result

    async def _run_layers(self, url: str) -> SafetyResult:
        findings: list[SafetyStatus] = []
        sources: list[str] = []

        hostname = hostname_of(url)
        if is_trusted_domain(hostname, self.trusted_domains):
            logger.debug("Trusted domain, skipping blocklist", url=url, host=hostname)
        else:
            matched = self.blocklist.lookup(url)
            if matched:
                logger.info("Blocklist match", url=url, sources=matched)
                findings.append(SafetyStatus.UNSAFE)
                sources.extend(matched)

        statuses = await asyncio.gather(
            *(check.check(url) for check in self.reputation_checks)
        )
        for check, status in zip(self.reputation_checks, statuses):
            if status is SafetyStatus.UNKNOWN:
                continue
            findings.append(status)
            if status in (SafetyStatus.UNSAFE, SafetyStatus.WARNING):
                sources.append(check.name)

        patterns = await self.heuristics.check(url)
        if patterns:
            findings.append(SafetyStatus.WARNING)
            sources.extend(patterns)

        return SafetyResult(worst_status(*findings), _dedupe(sources))
