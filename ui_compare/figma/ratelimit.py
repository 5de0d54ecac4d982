"""Process-wide spacing of Figma API calls.

Figma throttles personal access tokens aggressively; the cheapest way to
stay under the limit is to never send two requests closer together than
MIN_API_CALL_INTERVAL. Acquirers queue on an asyncio.Lock, so two
coroutines that arrive together are spaced out rather than both reading the
same stale timestamp. The lock is recreated per event loop, so the shared
limiter survives repeated asyncio.run() calls; the timestamp carries over.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger('ui_compare.figma.ratelimit')

MIN_API_CALL_INTERVAL = 3.0  # seconds


class RateLimiter:
    """Spaces successive acquire() calls at least `min_interval` seconds apart.

    Args:
        min_interval: Minimum gap between acquisitions, seconds.
        clock: Monotonic time source (injectable for tests).
        sleep: Async sleep (injectable for tests).
    """

    def __init__(
        self,
        min_interval: float = MIN_API_CALL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    @property
    def last_call(self) -> float | None:
        return self._last_call

    def _loop_lock(self) -> asyncio.Lock:
        # asyncio.Lock binds to one loop; each asyncio.run() gets its own
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def acquire(self) -> None:
        async with self._loop_lock():
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < self.min_interval:
                    wait = self.min_interval - elapsed
                    logger.info('Rate limit protection: waiting %.0fms', wait * 1000)
                    await self._sleep(wait)
            self._last_call = self._clock()


_default: RateLimiter | None = None


def default_rate_limiter() -> RateLimiter:
    """The shared limiter every FigmaClient uses unless given its own."""
    global _default
    if _default is None:
        _default = RateLimiter()
    return _default
