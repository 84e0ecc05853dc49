"""
Fixed-window rate limiter for outbound collaborator calls

One instance per client (never module-level state), so independent clients
and tests never share a window. Callers just `await limiter.acquire()`;
waiting is invisible to the recommendation loop.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger()


class RateLimiter:
    """At most `max_calls` acquisitions per `window_seconds`"""

    def __init__(
        self,
        max_calls: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_calls <= 0 or window_seconds <= 0:
            raise ValueError("max_calls and window_seconds must be positive")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._window_start = clock()
        self._count = 0

    async def acquire(self) -> None:
        """Take one slot, sleeping until the next window when the current one is full"""
        async with self._lock:
            now = self._clock()
            if now - self._window_start >= self.window_seconds:
                self._window_start = now
                self._count = 0

            if self._count >= self.max_calls:
                wait = self.window_seconds - (now - self._window_start)
                if wait > 0:
                    log.debug("Rate limit window full, waiting", wait_s=round(wait, 3))
                    await self._sleep(wait)
                self._window_start = self._clock()
                self._count = 0

            self._count += 1

    @property
    def in_window(self) -> int:
        return self._count
