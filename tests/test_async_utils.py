"""Tests for async helpers: the concurrency limiter and timeouts."""

import asyncio

import pytest

from linkshield.utils.async_utils import (
    ConcurrencyLimiter,
    create_task_with_error_handling,
    run_with_timeout,
)
from linkshield.utils.types import AsyncTimeoutError


class TestConcurrencyLimiter:
    """Admission gate behaviour."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_concurrent,tasks", [(1, 5), (3, 20), (10, 25)])
    async def test_never_exceeds_bound(self, max_concurrent, tasks):
        limiter = ConcurrencyLimiter(max_concurrent)
        held = 0
        peak = 0

        async def work():
            nonlocal held, peak
            held += 1
            peak = max(peak, held)
            await asyncio.sleep(0.01)
            held -= 1

        await asyncio.gather(*(limiter.run(work) for _ in range(tasks)))

        assert peak == max_concurrent
        assert limiter.running == 0
        assert limiter.waiting == 0

    @pytest.mark.asyncio
    async def test_waiters_admitted_in_arrival_order(self):
        limiter = ConcurrencyLimiter(1)
        order = []
        gate = asyncio.Event()

        async def first():
            await gate.wait()
            order.append("first")

        async def record(name):
            order.append(name)

        holder = asyncio.create_task(limiter.run(first))
        await asyncio.sleep(0)
        waiters = [asyncio.create_task(limiter.run(lambda n=n: record(n))) for n in "abc"]
        await asyncio.sleep(0)

        assert limiter.running == 1
        assert limiter.waiting == 3

        gate.set()
        await asyncio.gather(holder, *waiters)

        assert order == ["first", "a", "b", "c"]

    @pytest.mark.asyncio
    async def test_slot_released_when_task_fails(self):
        limiter = ConcurrencyLimiter(1)

        async def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await limiter.run(boom)

        assert limiter.running == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_queue(self):
        limiter = ConcurrencyLimiter(1)
        await limiter.acquire()

        waiter = asyncio.create_task(limiter.acquire())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert limiter.waiting == 0
        limiter.release()
        assert limiter.running == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        limiter = ConcurrencyLimiter(2)
        async with limiter:
            assert limiter.running == 1
        assert limiter.running == 0

    def test_rejects_non_positive_bound(self):
        with pytest.raises(ValueError):
            ConcurrencyLimiter(0)


@pytest.mark.asyncio
async def test_run_with_timeout_raises():
    with pytest.raises(AsyncTimeoutError):
        await run_with_timeout(asyncio.sleep(1), timeout=0.01)


@pytest.mark.asyncio
async def test_run_with_timeout_returns_value():
    async def value():
        return 42

    assert await run_with_timeout(value(), timeout=1) == 42


@pytest.mark.asyncio
async def test_background_task_reraises():
    async def boom():
        raise ValueError("bad")

    task = create_task_with_error_handling(boom(), task_name="boom")
    with pytest.raises(ValueError):
        await task
    assert task.get_name() == "boom"
