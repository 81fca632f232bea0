"""FIFO rate limiter for calls to the 360Giving API.

360Giving allows 2 requests per second. Every call from every caller is
queued on one shared ``RateLimiter``: one unit of work runs at a time and
consecutive units start at least ``min_interval`` seconds apart.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 500ms between request starts = 2 requests/second
DEFAULT_MIN_INTERVAL = 0.5

_Job = Tuple[Callable[[], Awaitable], "asyncio.Future"]


class RateLimiter:
    """Serialises awaitable thunks with a minimum start-to-start interval.

    Units complete in submission order. A failing unit rejects only its own
    submitter; queued units behind it still run. Nothing can be cancelled
    once enqueued: a submitter that stops waiting does not remove its unit.
    """

    def __init__(self, min_interval: float = DEFAULT_MIN_INTERVAL) -> None:
        if min_interval < 0:
            raise ValueError(f"min_interval must be >= 0, got {min_interval}")
        self.min_interval = min_interval
        self._queue: Optional["asyncio.Queue[_Job]"] = None
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._last_start: Optional[float] = None

    async def submit(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Queue ``fn`` and wait for its result (or exception)."""
        loop = asyncio.get_running_loop()
        queue = self._queue_for(loop)
        future = loop.create_future()
        queue.put_nowait((fn, future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain(queue))
        return await future

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def _queue_for(self, loop: asyncio.AbstractEventLoop) -> "asyncio.Queue[_Job]":
        # A new event loop (e.g. a second asyncio.run) gets a fresh queue.
        if self._loop is not loop:
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = None
            self._last_start = None
        return self._queue

    async def _drain(self, queue: "asyncio.Queue[_Job]") -> None:
        loop = asyncio.get_running_loop()
        while not queue.empty():
            fn, future = queue.get_nowait()
            await self._wait_for_slot(loop)
            self._last_start = loop.time()
            try:
                result = await fn()
            except Exception as exc:
                if future.done():
                    logger.debug("Rate-limited call failed after caller left: %s", exc)
                else:
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                queue.task_done()

    async def _wait_for_slot(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._last_start is None:
            return
        wait = self._last_start + self.min_interval - loop.time()
        while wait > 0:
            await asyncio.sleep(wait)
            wait = self._last_start + self.min_interval - loop.time()
