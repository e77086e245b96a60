"""Async utility functions and helpers."""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Optional, TypeVar

from .logging import get_structured_logger
from .types import AsyncTimeoutError

logger = get_structured_logger(__name__)

T = TypeVar("T")


async def run_with_timeout(
    coro: Awaitable[T], timeout: float, timeout_message: Optional[str] = None
) -> T:
    """Run a coroutine with a timeout."""
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as e:
        msg = timeout_message or f"Operation timed out after {timeout}s"
        logger.warning(msg)
        raise AsyncTimeoutError(msg) from e


class ConcurrencyLimiter:
    """Admission gate bounding how many tasks run their body at once.

    Callers beyond ``max_concurrent`` suspend on a FIFO queue. Releasing a
    slot hands it directly to the oldest waiter, so a newly arriving caller
    can never overtake one that is already queued.
    """

    def __init__(self, max_concurrent: int = 10):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._running = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def running(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._running

    @property
    def waiting(self) -> int:
        """Number of callers suspended in the wait queue."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        """Wait for a free slot."""
        if self._running < self.max_concurrent and not self._waiters:
            self._running += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # A slot was handed over just before cancellation, pass it on
                self.release()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def release(self) -> None:
        """Free a slot, waking exactly one waiter if any are queued."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot transfers to the waiter; the running count is unchanged
                waiter.set_result(None)
                return
        if self._running > 0:
            self._running -= 1

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` once a slot is available."""
        await self.acquire()
        try:
            return await task()
        finally:
            self.release()

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class AsyncContextManager:
    """Base class for async context managers."""

    async def __aenter__(self):
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()

    async def setup(self) -> None:
        """Setup the context manager."""
        pass

    async def cleanup(self) -> None:
        """Cleanup the context manager."""
        pass


def create_task_with_error_handling(
    coro: Coroutine[Any, Any, T], task_name: str = "unnamed_task"
) -> asyncio.Task[T]:
    """Create a task with automatic error logging."""

    async def wrapped_coro() -> T:
        try:
            return await coro
        except Exception as e:
            logger.exception("Background task failed", task=task_name, error=str(e))
            raise

    task = asyncio.create_task(wrapped_coro())
    task.set_name(task_name)
    return task
