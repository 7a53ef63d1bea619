"""Bounded TTL cache for PyPI metadata.

:class:`PackageCache` is a key-agnostic store with three removal paths:

1. **Expiry on read**: ``get``/``has`` drop an entry whose TTL has
   elapsed, so expired data is never returned regardless of sweep timing.
2. **LRU eviction**: inserting a new key into a full cache first evicts
   exactly one entry, the least recently accessed.
3. **Background sweep**: an optional asyncio task removes expired
   entries every ``check_period`` seconds to bound memory between reads.

The cache is owned by whoever constructs it (normally
:class:`~tombo.core.service.PyPIService`); there is no module-level
instance. All mutation happens on the event loop thread, so no locking is
needed. A host that shares one instance across threads must wrap calls in
its own lock.

Typical usage::

    cache: PackageCache[PackageMetadata] = PackageCache(ttl=600, max_entries=1000)
    cache.set(PackageCache.package_key("requests", False), metadata)
    cache.get(PackageCache.package_key("requests", False))
"""

from __future__ import annotations

import time
import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from tombo.utils.logger import get_logger
from tombo.constants import (
    DEFAULT_CACHE_CHECK_PERIOD,
    DEFAULT_CACHE_TIMEOUT_MINUTES,
    DEFAULT_MAX_CACHE_SIZE,
)

logger = get_logger("cache")

__all__ = ["CacheEntry", "CacheStatistics", "PackageCache"]

T = TypeVar("T")

Clock = Callable[[], float]


# ---------------------------------------------------------------------------
# Entries and statistics
# ---------------------------------------------------------------------------


@dataclass
class CacheEntry(Generic[T]):
    """A single cached value with its freshness and access metadata.

    Attributes:
        data: The cached value.
        created_at: Clock reading when the value was stored.
        ttl: Lifetime in seconds.
        access_count: Number of times the entry was stored or read.
        last_accessed: Clock reading of the most recent store or read.
    """

    data: T
    created_at: float
    ttl: float
    access_count: int = 1
    last_accessed: float = 0.0

    def is_valid(self, now: float) -> bool:
        return now - self.created_at <= self.ttl

    def age(self, now: float) -> float:
        return max(0.0, now - self.created_at)


@dataclass(frozen=True)
class CacheStatistics:
    """Point-in-time snapshot of cache usage."""

    total_entries: int
    max_entries: int
    expired_count: int
    average_age_seconds: float
    total_access_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_entries": self.total_entries,
            "max_entries": self.max_entries,
            "expired_count": self.expired_count,
            "average_age_seconds": round(self.average_age_seconds, 2),
            "total_access_count": self.total_access_count,
        }


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class PackageCache(Generic[T]):
    """LRU + TTL key/value store.

    Args:
        ttl: Default lifetime in seconds for entries stored without an
            explicit TTL.
        max_entries: Capacity. Must be at least 1.
        check_period: Seconds between background sweeps once
            :meth:`start_sweeper` has been called.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_CACHE_TIMEOUT_MINUTES * 60,
        max_entries: int = DEFAULT_MAX_CACHE_SIZE,
        check_period: float = DEFAULT_CACHE_CHECK_PERIOD,
        clock: Clock = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.ttl = ttl
        self.max_entries = max_entries
        self.check_period = check_period
        self._clock = clock

        # Iteration order is recency order: first item is least recently used
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._sweeper: Optional[asyncio.Task[None]] = None
        self._disposed = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    # ------------------------------------------------------------------
    # Key builders
    # ------------------------------------------------------------------

    @staticmethod
    def package_key(name: str, include_pre_releases: bool) -> str:
        return f"pkg:{name}:{'pre' if include_pre_releases else 'stable'}"

    @staticmethod
    def versions_key(name: str, include_pre_releases: bool) -> str:
        return f"versions:{name}:{'pre' if include_pre_releases else 'stable'}"

    @staticmethod
    def info_key(name: str) -> str:
        return f"info:{name}"

    @staticmethod
    def connectivity_key(base_url: str) -> str:
        return f"connectivity:{base_url}"

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def get(self, key: str, default: Optional[T] = None) -> Optional[T]:
        """Return the value for ``key`` or ``default`` when absent or expired.

        A hit bumps the entry's access count, refreshes its last-access
        time and marks it most recently used. An expired entry is deleted.
        """
        entry = self._entries.get(key)
        if entry is None:
            return default

        now = self._clock()
        if not entry.is_valid(now):
            del self._entries[key]
            logger.debug("Cache entry expired: %s", key)
            return default

        entry.access_count += 1
        entry.last_accessed = now
        self._entries.move_to_end(key)
        return entry.data

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Lifetime override in seconds; ``None`` uses the default.
        """
        now = self._clock()

        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            self._evict_lru()

        self._entries[key] = CacheEntry(
            data=value,
            created_at=now,
            ttl=self.ttl if ttl is None else ttl,
            access_count=1,
            last_accessed=now,
        )

    def has(self, key: str) -> bool:
        """Return True if ``key`` holds an unexpired value.

        Unlike :meth:`get`, a hit leaves the access metadata untouched.
        """
        entry = self._entries.get(key)
        if entry is None:
            return False
        if not entry.is_valid(self._clock()):
            del self._entries[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if something was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        if count:
            logger.debug("Cleared %d cache entries", count)

    def get_statistics(self) -> CacheStatistics:
        """Return a snapshot of the cache without mutating it."""
        now = self._clock()
        entries = list(self._entries.values())
        total = len(entries)

        return CacheStatistics(
            total_entries=total,
            max_entries=self.max_entries,
            expired_count=sum(1 for e in entries if not e.is_valid(now)),
            average_age_seconds=(sum(e.age(now) for e in entries) / total) if total else 0.0,
            total_access_count=sum(e.access_count for e in entries),
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def purge_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def reconfigure(
        self,
        *,
        ttl: Optional[float] = None,
        max_entries: Optional[int] = None,
    ) -> None:
        """Apply new sizing. Shrinking capacity evicts LRU entries.

        Existing entries keep the TTL they were stored with.
        """
        if ttl is not None:
            self.ttl = ttl
        if max_entries is not None:
            if max_entries < 1:
                raise ValueError("max_entries must be at least 1")
            self.max_entries = max_entries
            while len(self._entries) > self.max_entries:
                self._evict_lru()

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        key, _ = self._entries.popitem(last=False)
        logger.debug("Evicted least recently used cache entry: %s", key)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    def start_sweeper(self) -> None:
        """Start the periodic expiry sweep on the running event loop.

        Calling it again while a sweep task is alive does nothing.

        Raises:
            RuntimeError: No event loop is running, or the cache is disposed.
        """
        if self._disposed:
            raise RuntimeError("Cannot start sweeper on a disposed cache")
        if self._sweeper is not None and not self._sweeper.done():
            return
        loop = asyncio.get_running_loop()
        self._sweeper = loop.create_task(self._sweep_forever())

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.check_period)
            self.purge_expired()

    def dispose(self) -> None:
        """Stop the sweeper and drop all entries. Safe to call repeatedly."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None
        self._entries.clear()
        self._disposed = True
