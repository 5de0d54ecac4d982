"""In-memory TTL cache for Figma API responses.

Keys are semantic ("frame-data-<file>-<node>", "figma-image-<file>-<node>"),
so two URLs that normalise to the same frame share an entry. Failed fetches
are never stored. Concurrent misses on one key each run the fetcher; there is
no single-flight de-duplication.

Stale entries are swept on every insert, each against the TTL it was stored
with. `max_entries` (if set) evicts the oldest ones, so a long-running
process does not grow without bound.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger('ui_compare.figma.cache')

CACHE_TTL = 15 * 60.0  # seconds

T = TypeVar('T')


@dataclass
class CacheEntry:
    key: str
    data: Any
    timestamp: float
    ttl: float


class ResponseCache:
    def __init__(
        self,
        ttl: float = CACHE_TTL,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        ttl = self.ttl if ttl is None else ttl
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.timestamp < ttl:
            logger.info('Cache hit for: %s', key)
            return entry.data

        logger.info('Cache miss for: %s', key)
        data = await fetcher()
        self._store(key, data, ttl)
        return data

    def _store(self, key: str, data: Any, ttl: float) -> None:
        self.sweep()
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key, data, self._clock(), ttl)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    def sweep(self) -> int:
        """Drop entries older than their own TTL. Returns how many were removed."""
        now = self._clock()
        stale = [k for k, e in self._entries.items() if now - e.timestamp >= e.ttl]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug('Swept %d stale cache entries', len(stale))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()


_default: ResponseCache | None = None


def default_cache() -> ResponseCache:
    """The shared cache every FigmaClient uses unless given its own."""
    global _default
    if _default is None:
        _default = ResponseCache()
    return _default
