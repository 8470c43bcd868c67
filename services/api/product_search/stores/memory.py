"""In-process TTL cache with LRU eviction and hit/miss metrics.

One SearchCache instance per concern (search results, autocomplete,
embeddings, recommendations). Entries expire `ttl` seconds after they were
written; when the cache is full the least recently accessed entry is evicted.
`sweep_periodically` drops expired entries in the background.

Not shared between workers - use the Redis store for that.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
import logging
import time
from typing import Any, Callable, Generic, Iterator, TypeVar

T = TypeVar("T")

logger = logging.getLogger("uvicorn.error")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
    ttl: float
    last_accessed: float
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


@dataclass
class CacheMetrics:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    total_size: int = 0
    hit_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SearchCache(Generic[T]):
    """Map-backed cache with per-entry TTL."""

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = 300.0,
        *,
        enable_lru: bool = True,
        clock: Clock = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.enable_lru = enable_lru
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._metrics = CacheMetrics()

    def get(self, key: str) -> T | None:
        """Return the cached value, or None on miss/expiry."""
        entry = self._entries.get(key)
        now = self._clock()

        if entry is None:
            self._record_miss()
            return None

        if entry.is_expired(now):
            del self._entries[key]
            self._metrics.total_size = len(self._entries)
            self._record_miss()
            return None

        entry.hits += 1
        entry.last_accessed = now
        self._metrics.hits += 1
        self._update_hit_rate()
        return entry.data

    def set(self, key: str, data: T, ttl: float | None = None) -> None:
        """Store a value; evicts the LRU entry first when full."""
        now = self._clock()
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_lru()

        self._entries[key] = CacheEntry(
            data=data,
            timestamp=now,
            ttl=self.default_ttl if ttl is None else ttl,
            last_accessed=now,
        )
        self._metrics.total_size = len(self._entries)

    def delete(self, key: str) -> bool:
        existed = self._entries.pop(key, None) is not None
        self._metrics.total_size = len(self._entries)
        return existed

    def clear(self) -> None:
        self._entries.clear()
        self._metrics.total_size = 0

    def has(self, key: str) -> bool:
        """Check presence without touching hit/miss counters."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            self.delete(key)
            return False
        return True

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def items(self) -> Iterator[tuple[str, T]]:
        """Iterate over live (non-expired) entries."""
        now = self._clock()
        for key, entry in list(self._entries.items()):
            if not entry.is_expired(now):
                yield key, entry.data

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def cleanup(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._metrics.total_size = len(self._entries)
        return len(expired)

    def invalidate_where(self, predicate: Callable[[str], bool]) -> int:
        """Drop every key for which `predicate(key)` is true."""
        doomed = [k for k in self._entries if predicate(k)]
        for key in doomed:
            del self._entries[key]
        self._metrics.total_size = len(self._entries)
        return len(doomed)

    def get_metrics(self) -> CacheMetrics:
        return CacheMetrics(**self._metrics.to_dict())

    def _evict_lru(self) -> None:
        if not self.enable_lru or not self._entries:
            return
        lru_key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
        del self._entries[lru_key]
        self._metrics.evictions += 1

    def _record_miss(self) -> None:
        self._metrics.misses += 1
        self._update_hit_rate()

    def _update_hit_rate(self) -> None:
        total = self._metrics.hits + self._metrics.misses
        self._metrics.hit_rate = self._metrics.hits / total if total else 0.0


async def sweep_periodically(name: str, cleanup: Callable[[], Any], interval: float) -> None:
    """Run `cleanup()` every `interval` seconds until the task is cancelled.

    A failing sweep is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            removed = cleanup()
        except Exception:
            logger.exception(f"{name} cache sweep failed")
            continue
        logger.info(f"{name} cache sweep removed {removed}")
