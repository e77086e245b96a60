"""Buffered delivery of per-bookmark scan results."""

import asyncio
from typing import Any, Optional

from .events import SCAN_BATCH_COMPLETE, EventBus


class ResultBatcher:
    """Delivers results in groups of ``batch_size`` or after ``flush_timeout``.

    Whichever limit is reached first triggers delivery, so a consumer sees
    a handful of batch events instead of one message per bookmark.
    """

    def __init__(self, events: EventBus, batch_size: int = 10, flush_timeout: float = 0.5):
        self.events = events
        self.batch_size = batch_size
        self.flush_timeout = flush_timeout
        self._pending: list[dict[str, Any]] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self.delivered = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def add(self, result: dict[str, Any]) -> None:
        self._pending.append(result)
        if len(self._pending) >= self.batch_size:
            self.flush()
        elif self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.flush_timeout, self.flush)

    def flush(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._pending:
            return
        results, self._pending = self._pending, []
        self.delivered += len(results)
        self.events.emit(SCAN_BATCH_COMPLETE, results=results)
