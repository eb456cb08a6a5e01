"""
freshsync: in-process data synchronization engine.

A freshness-aware cache, request deduplication, and a retrying,
self-refreshing query orchestrator for asyncio applications.
"""
from .cache import (
    CacheStore,
    Freshness,
    RequestCoalescer,
    ResourceCategory,
    get_options_for_category,
    make_cache_key,
    make_query_key,
)
from .errors import (
    ErrorKind,
    FetchError,
    FreshSyncError,
    RequestCancelledError,
    RetriesExhaustedError,
    classify_error,
)
from .query import (
    QueryOptions,
    QueryOrchestrator,
    QueryResult,
    QueryStatus,
    Subscription,
    get_orchestrator,
    reset_orchestrator,
)
from .triggers import AttentionSignal, IntervalTrigger

__version__ = "0.1.0"

__all__ = [
    "CacheStore",
    "Freshness",
    "RequestCoalescer",
    "ResourceCategory",
    "get_options_for_category",
    "make_cache_key",
    "make_query_key",
    "ErrorKind",
    "FetchError",
    "FreshSyncError",
    "RequestCancelledError",
    "RetriesExhaustedError",
    "classify_error",
    "QueryOptions",
    "QueryOrchestrator",
    "QueryResult",
    "QueryStatus",
    "Subscription",
    "get_orchestrator",
    "reset_orchestrator",
    "AttentionSignal",
    "IntervalTrigger",
]
