"""Pytest configuration and fixtures."""

import pytest

from freshsync.cache.coalescer import RequestCoalescer
from freshsync.cache.store import CacheStore
from freshsync.query.orchestrator import QueryOrchestrator


class FakeClock:
    """Manually advanced time source, in seconds."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> CacheStore:
    """Store with the default 5 minute TTL / 2.5 minute stale window."""
    return CacheStore(max_entries=100, default_ttl=300, default_stale=150, clock=clock)


@pytest.fixture
def coalescer(clock) -> RequestCoalescer:
    """Coalescer with throttling disabled."""
    return RequestCoalescer(throttle_window=0, clock=clock)


@pytest.fixture
def orchestrator(store, coalescer) -> QueryOrchestrator:
    return QueryOrchestrator(store=store, coalescer=coalescer)
