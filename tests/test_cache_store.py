"""
Unit tests for the cache store: freshness partition, invalidation,
cleanup and LRU eviction.
"""
import re

from freshsync.cache.core import Freshness
from freshsync.cache.store import CacheStore


# =============================================================================
# Freshness partition
# =============================================================================

def test_fresh_before_stale_time(store, clock):
    store.set("k", {"v": 1}, ttl=300, stale=150)
    clock.advance(149.9)
    assert store.freshness("k") is Freshness.FRESH
    assert store.get("k") == {"v": 1}
    assert store.is_stale("k") is False


def test_stale_from_stale_time_until_ttl(store, clock):
    store.set("k", {"v": 1}, ttl=300, stale=150)
    clock.advance(150)
    assert store.freshness("k") is Freshness.STALE
    assert store.is_stale("k") is True
    clock.advance(149.9)
    assert store.freshness("k") is Freshness.STALE
    assert store.get("k") == {"v": 1}
    assert store.get_stale("k") == {"v": 1}


def test_expired_at_ttl(store, clock):
    store.set("k", {"v": 1}, ttl=300, stale=150)
    clock.advance(300)
    assert store.freshness("k") is Freshness.EXPIRED
    assert store.is_stale("k") is False
    assert store.get("k") is None
    # get() dropped the expired entry
    assert store.freshness("k") is Freshness.ABSENT
    assert store.get_stale("k") is None


def test_absent_key():
    store = CacheStore()
    assert store.get("missing") is None
    assert store.get_stale("missing") is None
    assert store.is_stale("missing") is False
    assert store.freshness("missing") is Freshness.ABSENT


def test_set_uses_store_defaults(store, clock):
    store.set("k", "value")
    clock.advance(151)
    assert store.is_stale("k")


def test_set_resets_age(store, clock):
    store.set("k", 1, ttl=300, stale=150)
    clock.advance(200)
    store.set("k", 2, ttl=300, stale=150)
    assert store.freshness("k") is Freshness.FRESH
    assert store.age("k") == 0


def test_stale_time_above_ttl_is_clamped(store, clock):
    store.set("k", 1, ttl=10, stale=50)
    clock.advance(10)
    assert store.freshness("k") is Freshness.EXPIRED


# =============================================================================
# Invalidation
# =============================================================================

def test_invalidate_then_get_stale_reports_absent(store):
    store.set("holders:{}", [1, 2, 3])
    assert store.invalidate("holders:{}") is True
    assert store.get_stale("holders:{}") is None
    assert store.get("holders:{}") is None
    assert store.invalidate("holders:{}") is False


def test_invalidate_pattern(store):
    store.set("payouts:{\"limit\":10}", 1)
    store.set("payouts:{}", 2)
    store.set("holders:{}", 3)
    assert store.invalidate_pattern("^payouts:") == 2
    assert store.keys() == ["holders:{}"]
    assert store.invalidate_pattern(re.compile("holders")) == 1
    assert len(store) == 0


def test_clear(store):
    store.set("a", 1)
    store.set("b", 2)
    assert store.clear() == 2
    assert len(store) == 0


# =============================================================================
# Cleanup and eviction
# =============================================================================

def test_cleanup_removes_only_expired(store, clock):
    store.set("short", 1, ttl=10, stale=5)
    store.set("long", 2, ttl=100, stale=50)
    clock.advance(50)
    assert store.cleanup() == 1
    assert store.keys() == ["long"]


def test_cleanup_runs_opportunistically_on_set(clock):
    store = CacheStore(cleanup_interval=60, clock=clock)
    store.set("short", 1, ttl=10, stale=5)
    clock.advance(61)
    store.set("other", 2)
    assert "short" not in store.keys()


def test_lru_eviction_when_full(clock):
    store = CacheStore(max_entries=2, clock=clock)
    store.set("a", 1)
    store.set("b", 2)
    store.get("a")  # a becomes most recently used
    store.set("c", 3)
    assert sorted(store.keys()) == ["a", "c"]
    assert store.get_stats().evictions == 1


def test_overwrite_does_not_evict(clock):
    store = CacheStore(max_entries=2, clock=clock)
    store.set("a", 1)
    store.set("b", 2)
    store.set("a", 10)
    assert sorted(store.keys()) == ["a", "b"]
    assert store.get_stats().evictions == 0


def test_stats(store, clock):
    store.set("fresh", 1, ttl=300, stale=150)
    store.set("stale", 2, ttl=100, stale=10)
    clock.advance(20)
    store.get("fresh")
    store.get("missing")

    stats = store.get_stats()
    assert stats.total == 2
    assert stats.fresh == 1
    assert stats.stale == 1
    assert stats.expired == 0
    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.to_dict()["hitRatePercent"] == 50.0
