"""Tests for the event bus and batched result delivery."""

import asyncio

import pytest

from linkshield.scanner.batcher import ResultBatcher
from linkshield.scanner.events import (
    SCAN_BATCH_COMPLETE,
    SCAN_PROGRESS,
    SCAN_STARTED,
    EngineEvent,
    EventBus,
)


class TestEventBus:
    def test_emit_without_listeners(self):
        event = EventBus().emit(SCAN_STARTED, total=3)
        assert event.to_dict() == {"type": "scanStarted", "total": 3}

    def test_unknown_event_type(self):
        with pytest.raises(ValueError):
            EventBus().emit("somethingElse")

    def test_subscribe_and_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)

        bus.emit(SCAN_PROGRESS, scanned=1, total=2)
        unsubscribe()
        unsubscribe()
        bus.emit(SCAN_PROGRESS, scanned=2, total=2)

        assert [e.data["scanned"] for e in received] == [1]
        assert bus.listener_count == 0

    def test_failing_listener_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event: EngineEvent) -> None:
            raise RuntimeError("listener bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.emit(SCAN_STARTED, total=1)

        assert len(received) == 1


class TestResultBatcher:
    def collect(self):
        bus = EventBus()
        batches = []
        bus.subscribe(
            lambda e: batches.append(e.data["results"]) if e.type == SCAN_BATCH_COMPLETE else None
        )
        return bus, batches

    @pytest.mark.asyncio
    async def test_flushes_when_full(self):
        bus, batches = self.collect()
        batcher = ResultBatcher(bus, batch_size=2, flush_timeout=10)

        batcher.add({"id": "1"})
        assert batches == []
        batcher.add({"id": "2"})

        assert batches == [[{"id": "1"}, {"id": "2"}]]
        assert batcher.pending == 0

    @pytest.mark.asyncio
    async def test_flushes_after_timeout(self):
        bus, batches = self.collect()
        batcher = ResultBatcher(bus, batch_size=10, flush_timeout=0.01)

        batcher.add({"id": "1"})
        await asyncio.sleep(0.05)

        assert batches == [[{"id": "1"}]]
        assert batcher.delivered == 1

    @pytest.mark.asyncio
    async def test_final_flush(self):
        bus, batches = self.collect()
        batcher = ResultBatcher(bus, batch_size=10, flush_timeout=10)

        batcher.add({"id": "1"})
        batcher.flush()
        batcher.flush()

        assert batches == [[{"id": "1"}]]
