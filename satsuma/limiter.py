"""Bounded-parallelism task admission.

The limiter is what keeps the committer from opening hundreds of files at once:
at most ``concurrency`` tasks are in flight, the rest wait in FIFO order and a
finishing task admits the next one immediately.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .errors import ConfigurationError

T = TypeVar("T")

Task = Callable[[], Awaitable[T]]


class Limiter:
    """FIFO concurrency gate for asyncio tasks.

    Attributes:
        concurrency: Maximum number of tasks running at once.
    """

    def __init__(self, concurrency: int):
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise ConfigurationError(
                f"Concurrency must be a positive integer, got {concurrency!r}"
            )
        self.concurrency = concurrency
        self._active = 0
        self._queue: deque[tuple[Task[Any], asyncio.Future]] = deque()
        self._running: set[asyncio.Future] = set()

    @property
    def active(self) -> int:
        """Number of tasks currently running."""
        return self._active

    @property
    def pending(self) -> int:
        """Number of tasks waiting for a slot."""
        return len(self._queue)

    async def run(self, task: Task[T]) -> T:
        """Schedule ``task`` and wait for its result.

        Args:
            task: Zero-argument callable returning an awaitable.

        Returns:
            Whatever the task's awaitable returns; its exception propagates.
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._queue.append((task, future))
        self._admit()
        return await future

    __call__ = run

    def clear(self) -> None:
        """Drop every task that has not started yet; their callers are cancelled."""
        while self._queue:
            _, future = self._queue.popleft()
            future.cancel()

    async def join(self) -> None:
        """Wait until every started task has finished."""
        while self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    def _admit(self) -> None:
        while self._active < self.concurrency and self._queue:
            task, future = self._queue.popleft()
            if future.done():
                continue
            self._active += 1
            running = asyncio.ensure_future(self._execute(task, future))
            self._running.add(running)
            running.add_done_callback(self._running.discard)

    async def _execute(self, task: Task[Any], future: asyncio.Future) -> None:
        try:
            result = await task()
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._active -= 1
            self._admit()


def limiter(concurrency: int) -> Callable[[Task[T]], Awaitable[T]]:
    """Return a scheduling function that admits at most ``concurrency`` tasks."""
    return Limiter(concurrency).run
