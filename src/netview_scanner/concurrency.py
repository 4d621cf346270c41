"""
Cancellation tokens and a bounded worker pool.

Both are thin wrappers over asyncio primitives so that the scanner and
monitor can express "signal, then wait for full stop" and "at most N
workers in flight" without touching tasks and semaphores directly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative cancellation signal with join support.

    ``cancel()`` only signals. Work observing the token stops at its next
    check; ``join()`` waits until every attached task has exited.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for cancellation.

        Returns True if the token was cancelled, False if the timeout
        elapsed first.
        """
        if timeout is None:
            await self._event.wait()
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def attach(self, task: asyncio.Task) -> asyncio.Task:
        """Register a task that ``join()`` must wait for."""
        self._tasks.append(task)
        return task

    async def join(self) -> None:
        """Wait until every attached task has finished."""
        if not self._tasks:
            return
        current = asyncio.current_task()
        pending = [t for t in self._tasks if t is not current]
        await asyncio.gather(*pending, return_exceptions=True)

    async def cancel_and_join(self) -> None:
        self.cancel()
        await self.join()


class WorkerPool:
    """
    Fixed-capacity pool of asyncio workers.

    ``submit()`` blocks while the pool is full, so a caller that submits
    in a loop never has more than ``capacity`` workers in flight.
    ``join()`` waits for the pool to drain.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Worker pool capacity must be positive: {capacity}")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._tasks: set[asyncio.Task] = set()
        self.in_flight = 0
        self.peak_in_flight = 0
        self.submitted = 0

    async def submit(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        token: Optional[CancellationToken] = None,
    ) -> Optional[asyncio.Task]:
        """
        Wait for a free slot, then start ``func(*args)`` as a worker.

        If ``token`` was cancelled while waiting for the slot, nothing is
        started and None is returned.
        """
        await self._semaphore.acquire()
        if token is not None and token.is_cancelled:
            self._semaphore.release()
            return None

        self.in_flight += 1
        self.submitted += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)

        task = asyncio.create_task(self._run(func, *args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, func: Callable[..., Awaitable[Any]], *args: Any) -> None:
        try:
            await func(*args)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Worker {getattr(func, '__name__', func)} failed: {e}")
        finally:
            self.in_flight -= 1
            self._semaphore.release()

    async def join(self) -> None:
        """Wait until every submitted worker has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
