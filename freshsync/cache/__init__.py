"""
Freshness-aware caching with request coalescing.
"""
from .core import CacheEntry, CacheStats, Freshness
from .store import CacheStore
from .coalescer import InFlightRequest, RequestCoalescer
from .ttl_policies import (
    TTL_CONFIG,
    ResourceCategory,
    get_ttl_for_category,
    get_options_for_category,
    make_cache_key,
    make_query_key,
)

__all__ = [
    # Core types
    "CacheEntry",
    "CacheStats",
    "Freshness",
    # Store
    "CacheStore",
    # Coalescing
    "InFlightRequest",
    "RequestCoalescer",
    # Freshness presets and keys
    "TTL_CONFIG",
    "ResourceCategory",
    "get_ttl_for_category",
    "get_options_for_category",
    "make_cache_key",
    "make_query_key",
]
