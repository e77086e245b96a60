"""Typed event emitter connecting the engine to its observers."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

BLOCKLIST_PROGRESS = "blocklistProgress"
BLOCKLIST_COMPLETE = "blocklistComplete"
SCAN_STATUS = "scanStatus"
SCAN_STARTED = "scanStarted"
SCAN_PROGRESS = "scanProgress"
SCAN_BATCH_COMPLETE = "scanBatchComplete"
SCAN_COMPLETE = "scanComplete"
SCAN_CANCELLED = "scanCancelled"
SECURITY_ALERT = "securityAlert"

EVENT_TYPES = frozenset(
    {
        BLOCKLIST_PROGRESS,
        BLOCKLIST_COMPLETE,
        SCAN_STATUS,
        SCAN_STARTED,
        SCAN_PROGRESS,
        SCAN_BATCH_COMPLETE,
        SCAN_COMPLETE,
        SCAN_CANCELLED,
        SECURITY_ALERT,
    }
)


@dataclass
class EngineEvent:
    """One notification emitted by the engine."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.data}


Listener = Callable[[EngineEvent], Any]


class EventBus:
    """Fan-out of engine events to registered listeners.

    Emitting with no listeners is a no-op, and a listener that raises is
    logged and skipped so observers can never break a scan.
    """

    def __init__(self):
        self._listeners: list[Listener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event_type: str, **data: Any) -> EngineEvent:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        event = EngineEvent(type=event_type, data=data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "Event listener failed", event_type=event_type, error=str(e)
                )
        return event
