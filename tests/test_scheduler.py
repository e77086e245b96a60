"""Tests for the scheduled blocklist refresh."""

from datetime import datetime

import pytest

from linkshield.config import SchedulerSettings
from linkshield.scheduler import REFRESH_JOB_ID, BlocklistRefreshScheduler, SchedulerError


class StubBlocklist:
    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    async def ensure_ready(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class TestBlocklistRefreshScheduler:
    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = BlocklistRefreshScheduler(StubBlocklist(), SchedulerSettings(refresh_cron="0 3 * * *"))
        await scheduler.setup()
        try:
            assert scheduler.is_running is True
            assert scheduler.scheduler.get_job(REFRESH_JOB_ID) is not None
            next_run = scheduler.next_run_time()
            assert isinstance(next_run, datetime)
            assert (next_run.hour, next_run.minute) == (3, 0)
        finally:
            await scheduler.cleanup()

        assert scheduler.is_running is False
        assert scheduler.next_run_time() is None

    @pytest.mark.asyncio
    async def test_disabled(self):
        scheduler = BlocklistRefreshScheduler(StubBlocklist(), SchedulerSettings(enabled=False))
        await scheduler.setup()
        assert scheduler.is_running is False
        assert scheduler.scheduler is None

    @pytest.mark.asyncio
    async def test_invalid_cron(self):
        scheduler = BlocklistRefreshScheduler(StubBlocklist(), SchedulerSettings(refresh_cron="99 * * * *"))
        with pytest.raises(SchedulerError):
            await scheduler.setup()

    @pytest.mark.asyncio
    async def test_run_refresh_records_history(self):
        blocklist = StubBlocklist()
        scheduler = BlocklistRefreshScheduler(blocklist)

        assert await scheduler.run_refresh() is True

        run = scheduler.history[-1]
        assert run.success is True
        assert run.completed_at >= run.started_at
        assert blocklist.calls == 1

    @pytest.mark.asyncio
    async def test_run_refresh_failure(self):
        scheduler = BlocklistRefreshScheduler(StubBlocklist(error=RuntimeError("offline")))

        assert await scheduler.run_refresh() is False
        assert scheduler.history[-1].error_message == "offline"

    @pytest.mark.asyncio
    async def test_history_bounded(self):
        scheduler = BlocklistRefreshScheduler(StubBlocklist())
        for _ in range(25):
            await scheduler.run_refresh()
        assert len(scheduler.history) == 20
