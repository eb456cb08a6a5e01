"""
In-memory cache store with freshness classification and LRU eviction.

Entries carry two horizons: after ``stale_seconds`` they are served but should
be revalidated, after ``ttl_seconds`` they are gone. All operations are
synchronous and never raise; the store holds no locks because it is only
touched from the event loop thread.
"""
import logging
import re
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Pattern, Union

from .core import CacheEntry, CacheStats, Freshness

logger = logging.getLogger("cache.store")

DEFAULT_MAX_ENTRIES = 100
DEFAULT_TTL_SECONDS = 300.0        # 5 minutes
DEFAULT_STALE_SECONDS = 150.0      # 2.5 minutes
DEFAULT_CLEANUP_INTERVAL = 60.0    # sweep expired entries at most once a minute


class CacheStore:
    """
    Keyed storage of values with age-based freshness.

    - get(): value only while age < ttl
    - get_stale(): value while the entry is fresh or stale (stale-while-revalidate)
    - LRU eviction once max_entries is reached
    - opportunistic cleanup of expired entries from set()

    Usage:
        store = CacheStore(max_entries=200)
        store.set("holders:{}", payload, ttl=300, stale=150)
        if store.is_stale("holders:{}"):
            ...
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        default_stale: float = DEFAULT_STALE_SECONDS,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the store.

        Args:
            max_entries: Maximum number of entries before LRU eviction
            default_ttl: TTL used when set() is called without one
            default_stale: Stale threshold used when set() is called without one
            cleanup_interval: Minimum seconds between opportunistic sweeps
            clock: Time source in seconds; injectable for tests
        """
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.max_entries = max(1, max_entries)
        self.default_ttl = default_ttl
        self.default_stale = min(default_stale, default_ttl)
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._last_cleanup = clock()

        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
        }

    def now(self) -> float:
        return self._clock()

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        """Return a live entry, dropping it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug(f"CACHE EXPIRED: {key}")
            return None
        self._entries.move_to_end(key)
        return entry

    def get(self, key: str) -> Optional[Any]:
        """
        Get a value if the entry exists and has not expired.

        Returns:
            The cached value, or None on miss/expiry
        """
        entry = self._lookup(key)
        if entry is None:
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        return entry.data

    def get_stale(self, key: str) -> Optional[Any]:
        """
        Get a value whether it is fresh or stale.

        Only returns None when no entry exists or it is past its TTL.
        """
        entry = self._lookup(key)
        return entry.data if entry is not None else None

    def is_stale(self, key: str) -> bool:
        """True only while the entry is inside its stale window."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        return entry.is_stale(self._clock())

    def freshness(self, key: str) -> Freshness:
        entry = self._entries.get(key)
        if entry is None:
            return Freshness.ABSENT
        return entry.freshness(self._clock())

    def age(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        return entry.age_seconds(self._clock()) if entry is not None else None

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        stale: Optional[float] = None,
    ) -> None:
        """
        Store a value, overwriting any existing entry and resetting its age.

        Args:
            key: Cache key
            value: Value to store
            ttl: Seconds until the entry expires (default: store default)
            stale: Seconds until the entry is considered stale (default: store default)
        """
        ttl = self.default_ttl if ttl is None else ttl
        stale = self.default_stale if stale is None else stale
        if stale > ttl:
            logger.warning(
                f"stale time {stale}s exceeds ttl {ttl}s for {key}, clamping to ttl"
            )
            stale = ttl

        now = self._clock()
        self._maybe_cleanup(now)

        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._evict_lru()

        self._entries[key] = CacheEntry(
            key=key,
            data=value,
            stored_at=now,
            ttl_seconds=ttl,
            stale_seconds=stale,
        )
        self._entries.move_to_end(key)

    def invalidate(self, key: str) -> bool:
        """
        Invalidate a specific cache entry.

        Returns:
            True if entry was found and removed
        """
        if key in self._entries:
            del self._entries[key]
            logger.info(f"Invalidated cache: {key}")
            return True
        return False

    def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        """
        Invalidate all cache entries whose key matches a regular expression.

        Args:
            pattern: Regex string or compiled pattern, matched with search()

        Returns:
            Number of entries invalidated
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        to_delete = [k for k in self._entries if regex.search(k)]
        for key in to_delete:
            del self._entries[key]
        if to_delete:
            logger.info(f"Invalidated {len(to_delete)} entries matching '{regex.pattern}'")
        return len(to_delete)

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def cleanup(self) -> int:
        """
        Remove every entry that is past its TTL.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._last_cleanup = now
        if expired:
            logger.debug(f"Cleanup removed {len(expired)} expired entries")
        return len(expired)

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup >= self.cleanup_interval:
            self.cleanup()

    def _evict_lru(self) -> None:
        key, _ = self._entries.popitem(last=False)
        self._stats["evictions"] += 1
        logger.info(f"Evicted least recently used entry: {key}")

    def keys(self) -> list:
        return list(self._entries.keys())

    def __contains__(self, key: str) -> bool:
        return self.get_stale(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        now = self._clock()
        counts = {Freshness.FRESH: 0, Freshness.STALE: 0, Freshness.EXPIRED: 0}
        for entry in self._entries.values():
            counts[entry.freshness(now)] += 1

        return CacheStats(
            total=len(self._entries),
            fresh=counts[Freshness.FRESH],
            stale=counts[Freshness.STALE],
            expired=counts[Freshness.EXPIRED],
            max_entries=self.max_entries,
            hits=self._stats["hits"],
            misses=self._stats["misses"],
            evictions=self._stats["evictions"],
        )
