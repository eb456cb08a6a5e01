"""
Freshness presets per resource category, and cache key construction.
"""
import json
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from freshsync.query.models import QueryOptions


class ResourceCategory(Enum):
    """Categories of data with different caching behaviors."""
    STANDARD = "standard"        # 5 min TTL, polled every 5 min
    HISTORICAL = "historical"    # 10 min TTL, changes rarely, no polling
    VOLATILE = "volatile"        # 2 min TTL, balances and prices


# Freshness configuration by category (in seconds)
TTL_CONFIG: Dict[ResourceCategory, Dict[str, float]] = {
    ResourceCategory.STANDARD: {
        "ttl": 300,                # 5 minutes
        "stale_time": 150,         # stale after 2.5 minutes
        "refetch_interval": 300,   # poll every 5 minutes
    },
    ResourceCategory.HISTORICAL: {
        "ttl": 600,                # 10 minutes
        "stale_time": 300,         # 5 minutes
        "refetch_interval": 0,     # no polling
    },
    ResourceCategory.VOLATILE: {
        "ttl": 120,                # 2 minutes
        "stale_time": 60,          # 1 minute
        "refetch_interval": 120,   # poll every 2 minutes
    },
}


def get_ttl_for_category(category: ResourceCategory) -> Dict[str, float]:
    """
    Get freshness configuration for a resource category.

    Unknown categories fall back to STANDARD.
    """
    return dict(TTL_CONFIG.get(category, TTL_CONFIG[ResourceCategory.STANDARD]))


def get_options_for_category(category: ResourceCategory, **overrides: Any) -> QueryOptions:
    """
    Build query options from a category preset.

    Args:
        category: The resource category
        **overrides: Any QueryOptions field, e.g. enabled=False or on_error=...

    Returns:
        Validated QueryOptions
    """
    values: Dict[str, Any] = get_ttl_for_category(category)
    values.update(overrides)
    return QueryOptions(**values)


def make_cache_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Generate a cache key from an endpoint and its parameters.

    Params are sorted and JSON-encoded so equal parameter sets always map to
    the same key regardless of insertion order:

        make_cache_key("holders", {"limit": 50, "eligibleOnly": True})
        -> 'holders?eligibleOnly=true&limit=50'
    """
    if not params:
        return endpoint

    sorted_params = "&".join(
        f"{name}={json.dumps(params[name], sort_keys=True, separators=(',', ':'))}"
        for name in sorted(params)
    )
    return f"{endpoint}?{sorted_params}"


def make_query_key(*parts: Any) -> str:
    """
    Join key parts with ':', skipping None and empty strings.

        make_query_key("rewards", None) -> 'rewards'
        make_query_key("treasury-balance", "So11...") -> 'treasury-balance:So11...'
    """
    return ":".join(str(p) for p in parts if p is not None and p != "")
