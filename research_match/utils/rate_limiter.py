"""Pacing utilities for LLM calls.

FixedDelayThrottle spaces out sequential backfill calls; RequestRateLimiter
caps the request rate and concurrency of parallel scoring calls.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from aiolimiter import AsyncLimiter

SleepFn = Callable[[float], Awaitable[None]]


class FixedDelayThrottle:
    """Awaits a fixed delay between sequential calls.

    The sleep function is injectable so tests can record delays without
    waiting for them.
    """

    def __init__(self, delay_ms: int, sleep: Optional[SleepFn] = None):
        """Initialize the throttle.

        Args:
            delay_ms: Delay in milliseconds (0 disables waiting)
            sleep: Coroutine function taking seconds (default: asyncio.sleep)
        """
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        self.delay_ms = delay_ms
        self._sleep = sleep or asyncio.sleep

    async def wait(self) -> None:
        """Await the configured delay."""
        await self._sleep(self.delay_ms / 1000.0)


class RequestRateLimiter:
    """Caps concurrent LLM calls and requests per minute.

    Usage:
        limiter = RequestRateLimiter(max_concurrent=5, requests_per_minute=60)
        async with limiter:
            await client.complete(request)
    """

    def __init__(self, max_concurrent: int = 5, requests_per_minute: int = 60):
        """Initialize the limiter.

        Args:
            max_concurrent: Maximum calls in flight at once
            requests_per_minute: Maximum calls started per 60 seconds
        """
        self.max_concurrent = max_concurrent
        self.requests_per_minute = requests_per_minute
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._limiter = AsyncLimiter(max_rate=requests_per_minute, time_period=60.0)

    async def __aenter__(self) -> "RequestRateLimiter":
        await self._semaphore.acquire()
        try:
            await self._limiter.acquire()
        except BaseException:
            self._semaphore.release()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._semaphore.release()
