"""
Core cache data structures.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Freshness(Enum):
    """Freshness classification of a cache entry at read time."""
    FRESH = "fresh"       # age < stale_seconds
    STALE = "stale"       # stale_seconds <= age < ttl_seconds, serve and revalidate
    EXPIRED = "expired"   # age >= ttl_seconds, treated as absent
    ABSENT = "absent"     # no entry at all


@dataclass
class CacheEntry:
    """
    Represents a cached item with metadata for TTL and staleness tracking.

    Timestamps come from the owning store's clock (monotonic seconds by default),
    so age is always computed against that same clock.
    """
    key: str
    data: Any
    stored_at: float
    ttl_seconds: float
    stale_seconds: float

    def age_seconds(self, now: float) -> float:
        """Seconds since data was stored."""
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        return self.age_seconds(now) < self.stale_seconds

    def is_stale(self, now: float) -> bool:
        """Stale but still servable while revalidating."""
        age = self.age_seconds(now)
        return self.stale_seconds <= age < self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return self.age_seconds(now) >= self.ttl_seconds

    def freshness(self, now: float) -> Freshness:
        """Determine the freshness classification."""
        if self.is_fresh(now):
            return Freshness.FRESH
        elif self.is_stale(now):
            return Freshness.STALE
        else:
            return Freshness.EXPIRED


@dataclass
class CacheStats:
    """
    Snapshot of cache store counters.
    """
    total: int
    fresh: int
    stale: int
    expired: int
    max_entries: int
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate_percent(self) -> float:
        requests = self.hits + self.misses
        return round(self.hits / requests * 100, 1) if requests else 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for logging or JSON output."""
        return {
            "total": self.total,
            "fresh": self.fresh,
            "stale": self.stale,
            "expired": self.expired,
            "maxEntries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hitRatePercent": self.hit_rate_percent,
        }
