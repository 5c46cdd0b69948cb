"""Rate limiter that serializes outbound scrape operations."""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """
    FIFO task queue drained one task at a time under a fixed request window.

    Guarantees:
    - at most ``max_requests_per_window`` tasks start per window
    - consecutive tasks are spaced by ``delay_between_requests``
    - tasks run strictly in submission order
    - a failing task only fails its own caller; the queue keeps draining
    """

    def __init__(
        self,
        max_requests_per_window: int = 8,
        window_seconds: float = 60.0,
        delay_between_requests: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the limiter.

        Args:
            max_requests_per_window: Tasks allowed to start per window
            window_seconds: Window length
            delay_between_requests: Politeness delay after each task while
                more are queued
            clock: Monotonic time source (injectable for tests)
            sleep: Async sleep function (injectable for tests)
        """
        self.max_requests_per_window = max_requests_per_window
        self.window_seconds = window_seconds
        self.delay_between_requests = delay_between_requests
        self._clock = clock
        self._sleep = sleep

        self._queue: Deque[Tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._drain_task: Optional[asyncio.Task] = None
        self.request_count = 0
        self.window_start = clock()

    async def execute(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Queue a unit of work and wait for its result.

        Args:
            task: Zero-argument coroutine function

        Returns:
            Whatever the task returns

        Raises:
            Whatever the task raises
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append((task, future))

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self._drain())

        return await future

    async def _drain(self) -> None:
        """Process queued tasks until the queue is empty."""
        while self._queue:
            now = self._clock()
            if now - self.window_start >= self.window_seconds:
                self.request_count = 0
                self.window_start = now

            if self.request_count >= self.max_requests_per_window:
                wait_time = self.window_seconds - (now - self.window_start)
                logger.info(f"Rate limit reached. Waiting {wait_time:.1f}s...")
                await self._sleep(wait_time)
                self.request_count = 0
                self.window_start = self._clock()

            task, future = self._queue.popleft()
            if future.cancelled():
                continue

            self.request_count += 1
            await self._run(task, future)

            if self._queue:
                await self._sleep(self.delay_between_requests)

    async def _run(self, task: Callable[[], Awaitable[Any]], future: asyncio.Future) -> None:
        """
        Run one task in a child task and settle its caller's future.

        A task that cancels itself only cancels its own caller. Cancelling
        the drain loop still propagates.
        """
        runner = asyncio.ensure_future(task())
        try:
            await asyncio.wait({runner})
        except asyncio.CancelledError:
            runner.cancel()
            raise

        if future.done():
            return
        if runner.cancelled():
            logger.warning("Queued task was cancelled")
            future.cancel()
        elif runner.exception() is not None:
            future.set_exception(runner.exception())
        else:
            future.set_result(runner.result())

    def status(self) -> Dict[str, Any]:
        """Queue and window state, for surfacing in API responses."""
        return {
            "queueLength": len(self._queue),
            "requestCount": self.request_count,
            "maxRequests": self.max_requests_per_window,
            "windowMs": int(self.window_seconds * 1000),
        }
