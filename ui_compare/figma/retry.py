"""Bounded retry for Figma calls that hit HTTP 429.

Only RateLimitedError is retried. If the server named a wait of at least a
second (Retry-After), we sleep exactly that; shorter or missing values are
treated as unreliable and we fall back to base_delay * 2**attempt. Anything
else propagates on the first failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ui_compare.core.errors import RateLimitedError

logger = logging.getLogger('ui_compare.figma.retry')

MAX_RETRIES = 5
BASE_DELAY = 2.0  # seconds
MIN_RELIABLE_RETRY_AFTER = 1.0  # seconds

T = TypeVar('T')


def backoff_delay(error: RateLimitedError, attempt: int, base_delay: float = BASE_DELAY) -> float:
    """Seconds to wait after `error` on 0-indexed `attempt`."""
    if error.retry_after is not None and error.retry_after >= MIN_RELIABLE_RETRY_AFTER:
        return error.retry_after
    return base_delay * 2**attempt


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    last_error: RateLimitedError | None = None

    for attempt in range(max_retries):
        try:
            return await fn()
        except RateLimitedError as e:
            last_error = e
            if attempt == max_retries - 1:
                break
            wait = backoff_delay(e, attempt, base_delay)
            kind = 'explicit' if e.retry_after is not None and e.retry_after >= MIN_RELIABLE_RETRY_AFTER else '429'
            logger.info(
                'Rate limit hit (%s), waiting %.0fms (attempt %d/%d)...',
                kind,
                wait * 1000,
                attempt + 1,
                max_retries,
            )
            await sleep(wait)

    if last_error is None:
        raise ValueError(f'max_retries must be at least 1, got {max_retries}')
    logger.warning('Giving up after %d attempts: %s', max_retries, last_error)
    raise last_error
