from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """
    Cap the number of coroutines running at once.

    Waiting submissions are admitted in FIFO order as running ones finish. A failing
    task only fails its own submit() call; the limiter never retries or times out.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"Concurrency limit must be positive, got: {limit}")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._active = 0
        self._waiting = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return self._waiting

    async def submit(self, task: Callable[[], Awaitable[T]]) -> T:
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1
        self._active += 1
        try:
            return await task()
        finally:
            self._active -= 1
            self._semaphore.release()
