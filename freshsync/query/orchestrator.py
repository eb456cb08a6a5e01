"""
Query orchestration: cache store + request coalescer + subscriptions.
"""
import logging
import time
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Union

from config.settings import settings
from freshsync.cache.coalescer import RequestCoalescer
from freshsync.cache.store import CacheStore
from freshsync.query.models import QueryOptions, QueryResult
from freshsync.query.subscription import Subscription
from freshsync.triggers import AttentionSignal

logger = logging.getLogger("query.orchestrator")


class QueryOrchestrator:
    """
    Entry point for consumers:
    - subscribe()/unsubscribe() to watch a key
    - a cache store shared by every subscription
    - a request coalescer so one key is fetched at most once at a time
    - an attention signal fanned out to subscriptions that asked for it
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        coalescer: Optional[RequestCoalescer] = None,
        attention: Optional[AttentionSignal] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Cache store to share; built from settings if omitted
            coalescer: Request coalescer; built from settings if omitted
            attention: Attention signal source; a private one if omitted
            clock: Time source for the store and coalescer built here
        """
        # Explicit None checks: an empty CacheStore is falsy (it defines __len__)
        if store is None:
            store = CacheStore(
                max_entries=settings.cache_max_entries,
                default_ttl=settings.cache_ttl_seconds,
                default_stale=settings.cache_stale_seconds,
                cleanup_interval=settings.cache_cleanup_interval,
                clock=clock,
            )
        if coalescer is None:
            coalescer = RequestCoalescer(
                throttle_window=settings.throttle_window_seconds,
                max_concurrent=settings.max_concurrent_requests,
                clock=clock,
            )
        self.store = store
        self.coalescer = coalescer
        self.attention = attention if attention is not None else AttentionSignal()
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        options: Optional[QueryOptions] = None,
        **overrides: Any,
    ) -> Subscription:
        """
        Start watching a key.

        Args:
            key: Cache key, must encode every parameter of the resource
            fetch_fn: Coroutine function producing the value
            options: Query options (defaults from settings)
            **overrides: Individual QueryOptions fields, validated

        Returns:
            The subscription handle; call unsubscribe() or handle.close() when done
        """
        if options is None:
            options = QueryOptions(**overrides)
        elif overrides:
            options = QueryOptions(**{**dict(options), **overrides})

        subscription = Subscription(
            key,
            fetch_fn,
            options,
            store=self.store,
            coalescer=self.coalescer,
            attention=self.attention,
            on_close=self._forget,
        )
        self._subscriptions[key].append(subscription)
        logger.debug(f"Subscribed to {key} ({len(self._subscriptions[key])} watchers)")
        subscription.start()
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()

    def _forget(self, subscription: Subscription) -> None:
        watchers = self._subscriptions.get(subscription.key)
        if watchers and subscription in watchers:
            watchers.remove(subscription)
            if not watchers:
                del self._subscriptions[subscription.key]

    async def fetch_query(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        options: Optional[QueryOptions] = None,
        **overrides: Any,
    ) -> QueryResult:
        """
        One-shot query: subscribe, wait for outstanding fetches, unsubscribe.
        """
        subscription = self.subscribe(key, fetch_fn, options, **overrides)
        try:
            return await subscription.settled()
        finally:
            self.unsubscribe(subscription)

    def maybe_refresh(self, key: str) -> int:
        """
        Apply the stale-check-then-fetch rule to every subscription on a key.

        Returns:
            Number of subscriptions that scheduled a fetch
        """
        return sum(1 for s in self.subscriptions_for(key) if s.maybe_refresh())

    def notify_attention_regained(self) -> int:
        """Signal that the consumer is paying attention again (e.g. window refocus)."""
        count = self.attention.notify()
        logger.debug(f"Attention regained, notified {count} subscriptions")
        return count

    def invalidate(self, key: str) -> bool:
        """Drop a cached entry; subscriptions keep showing what they hold."""
        return self.store.invalidate(key)

    def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        return self.store.invalidate_pattern(pattern)

    def subscriptions_for(self, key: str) -> List[Subscription]:
        return list(self._subscriptions.get(key, []))

    @property
    def subscription_count(self) -> int:
        return sum(len(v) for v in self._subscriptions.values())

    def close(self) -> None:
        """Close every subscription and cancel pending fetches."""
        for watchers in list(self._subscriptions.values()):
            for subscription in list(watchers):
                subscription.close()
        self.coalescer.cancel_all()
        logger.info("Query orchestrator closed")

    def get_stats(self) -> Dict[str, Any]:
        """Get orchestrator statistics."""
        return {
            "cache": self.store.get_stats().to_dict(),
            "coalescer": self.coalescer.get_stats(),
            "subscriptions": self.subscription_count,
            "watched_keys": list(self._subscriptions.keys()),
        }


# Default orchestrator for the composition root
_orchestrator: Optional[QueryOrchestrator] = None


def get_orchestrator() -> QueryOrchestrator:
    """Get or create the default orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = QueryOrchestrator()
    return _orchestrator


def reset_orchestrator() -> None:
    """Close and drop the default orchestrator."""
    global _orchestrator
    if _orchestrator is not None:
        _orchestrator.close()
        _orchestrator = None
