"""
Query subscriptions: stale-while-revalidate reads, retries and background refresh.
"""
from .models import QueryOptions, QueryResult, QueryStatus
from .subscription import Subscription
from .orchestrator import QueryOrchestrator, get_orchestrator, reset_orchestrator

__all__ = [
    "QueryOptions",
    "QueryResult",
    "QueryStatus",
    "Subscription",
    "QueryOrchestrator",
    "get_orchestrator",
    "reset_orchestrator",
]
