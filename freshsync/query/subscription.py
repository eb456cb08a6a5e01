"""
Per-consumer query subscription.

A subscription watches one key. It decides on every read whether to serve
from cache, serve stale and revalidate in the background, or block on a
fetch, and it owns the timers and listeners that trigger background
refreshes. Network work always goes through the shared coalescer, so any
number of subscriptions on one key produce at most one upstream call.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from freshsync.cache.coalescer import InFlightRequest, RequestCoalescer
from freshsync.cache.core import Freshness
from freshsync.cache.store import CacheStore
from freshsync.query.models import QueryOptions, QueryResult, QueryStatus
from freshsync.retry import fetch_with_retry
from freshsync.triggers import AttentionSignal, IntervalTrigger

logger = logging.getLogger("query.subscription")

Listener = Callable[[QueryResult], None]


class Subscription:
    """
    Handle returned by QueryOrchestrator.subscribe().

    Exposes data, error, is_loading, is_fetching, is_stale and status, plus
    read(), refetch(), invalidate() and settled(). close() releases the
    interval timer and attention listener; a shared fetch that is already in
    flight keeps running and still updates the cache.
    """

    def __init__(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        options: QueryOptions,
        store: CacheStore,
        coalescer: RequestCoalescer,
        attention: Optional[AttentionSignal] = None,
        on_close: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.key = key
        self.fetch_fn = fetch_fn
        self.options = options
        self._store = store
        self._coalescer = coalescer
        self._attention = attention
        self._on_close = on_close

        self._data: Any = store.get_stale(key)
        self._error: Optional[BaseException] = None
        self._status = QueryStatus.NO_DATA
        if self._data is not None:
            self._status = self._status_from_cache()

        # outstanding fetch task -> whether it is a blocking (loading) fetch
        self._fetch_tasks: Dict[asyncio.Task, bool] = {}

        self._interval = IntervalTrigger(options.refetch_interval, self.maybe_refresh, name=key)
        self._remove_attention: Optional[Callable[[], None]] = None
        self._listeners: List[Listener] = []
        self._last_state: Optional[tuple] = None

        self.active = False
        self.closed = False

    # ── Observable state ─────────────────────────────────────

    @property
    def data(self) -> Any:
        return self._data

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def status(self) -> QueryStatus:
        return self._status

    @property
    def is_loading(self) -> bool:
        """True while a blocking fetch (no cached value to show) is outstanding."""
        return any(self._fetch_tasks.values())

    @property
    def is_fetching(self) -> bool:
        """True while any fetch of this subscription, background included, is outstanding."""
        return bool(self._fetch_tasks)

    @property
    def is_stale(self) -> bool:
        if self._data is None:
            return False
        return self._store.freshness(self.key) is not Freshness.FRESH

    @property
    def interval_running(self) -> bool:
        return self._interval.running

    def snapshot(self) -> QueryResult:
        return QueryResult(
            key=self.key,
            status=self._status,
            data=self._data,
            error=self._error,
            is_loading=self.is_loading,
            is_fetching=self.is_fetching,
            is_stale=self.is_stale,
        )

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """
        Receive a QueryResult every time the observable state changes.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _publish(self) -> None:
        result = self.snapshot()
        # Compared by identity, data may not support ==
        state = (
            result.status,
            id(result.data),
            id(result.error),
            result.is_loading,
            result.is_fetching,
            result.is_stale,
        )
        if state == self._last_state:
            return
        self._last_state = state
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception(f"Listener failed for {self.key}")

    # ── Lifecycle ────────────────────────────────────────────

    def start(self) -> None:
        """Mount the subscription. Needs a running event loop when enabled."""
        if self.options.enabled:
            self._activate()
        else:
            self._publish()

    def set_enabled(self, enabled: bool) -> None:
        if self.closed or enabled == self.options.enabled:
            return
        self.options = self.options.model_copy(update={"enabled": enabled})
        if enabled:
            self._activate()
        else:
            self._deactivate()

    def _activate(self) -> None:
        self.active = True
        self._interval.start()
        if self.options.refetch_on_attention and self._attention is not None:
            self._remove_attention = self._attention.add_listener(self.maybe_refresh)
        self.read()

    def _deactivate(self) -> None:
        self.active = False
        self._interval.stop()
        if self._remove_attention is not None:
            self._remove_attention()
            self._remove_attention = None

    def close(self) -> None:
        """
        Stop watching the key.

        Releases the timer and attention listener and stops this
        subscription's retry loops. The coalesced fetch itself is not
        aborted since other subscribers may be waiting on it.
        """
        if self.closed:
            return
        self._deactivate()
        self.closed = True
        for task in list(self._fetch_tasks):
            task.cancel()
        self._listeners.clear()
        logger.debug(f"Subscription closed: {self.key}")
        if self._on_close is not None:
            self._on_close(self)

    # ── Reads and triggers ───────────────────────────────────

    def read(self) -> Any:
        """
        Serve the key according to cache freshness.

        - fresh: return cached data, no network
        - stale: return cached data now and revalidate in the background
        - expired/absent: start a blocking fetch, return whatever is held locally

        Never waits on the network.
        """
        if self.closed:
            return self._data

        freshness = self._store.freshness(self.key)

        if freshness is Freshness.FRESH:
            logger.debug(f"CACHE HIT (fresh): {self.key}")
            self._data = self._store.get(self.key)
            if not self.is_loading:
                self._status = QueryStatus.FRESH
        elif freshness is Freshness.STALE:
            logger.debug(f"CACHE HIT (stale, revalidating): {self.key}")
            self._data = self._store.get_stale(self.key)
            self._status = QueryStatus.STALE_SERVING
            if not self.is_fetching:
                self._schedule(blocking=False)
        else:
            if not self.is_fetching:
                logger.debug(f"CACHE MISS: {self.key}")
                self._schedule(blocking=True)

        self._publish()
        return self._data

    def maybe_refresh(self) -> bool:
        """
        Refresh in the background if the cached entry is stale or gone.

        Shared by the interval timer and the attention signal. A call on
        fresh data does nothing.

        Returns:
            True if a fetch was scheduled
        """
        if not self.active:
            return False
        if self._store.freshness(self.key) is Freshness.FRESH:
            return False
        # One retry loop per subscription; the running one covers this trigger
        if self.is_fetching:
            return False

        logger.debug(f"Background refresh triggered: {self.key}")
        self._schedule(blocking=False)
        self._publish()
        return True

    async def refetch(self) -> Any:
        """
        Invalidate the cached entry and perform a full blocking fetch,
        ignoring freshness.

        Returns:
            The new data, or the last held data if the fetch failed
        """
        logger.info(f"REFETCH: {self.key}")
        self._store.invalidate(self.key)
        task = self._schedule(blocking=True)
        self._publish()
        return await task

    def invalidate(self) -> None:
        """Drop the cached entry and the locally held data."""
        self._store.invalidate(self.key)
        self._data = None
        self._status = QueryStatus.NO_DATA
        self._publish()

    async def settled(self) -> QueryResult:
        """Wait until no fetch of this subscription is outstanding."""
        while self._fetch_tasks:
            await asyncio.gather(*list(self._fetch_tasks), return_exceptions=True)
        return self.snapshot()

    # ── Fetching ─────────────────────────────────────────────

    def _schedule(self, blocking: bool) -> "asyncio.Task":
        if blocking:
            self._status = QueryStatus.LOADING
        task = asyncio.get_running_loop().create_task(self._fetch(blocking))
        self._fetch_tasks[task] = blocking
        # Covers tasks cancelled before their first step
        task.add_done_callback(lambda t: self._fetch_tasks.pop(t, None))
        return task

    async def _load(self) -> Any:
        # Runs inside the coalesced task: the cache write happens even if
        # every subscriber has gone away by the time the fetch returns.
        value = await self.fetch_fn()
        self._store.set(self.key, value, ttl=self.options.ttl, stale=self.options.stale_time)
        return value

    async def _fetch(self, blocking: bool) -> Any:
        task = asyncio.current_task()

        def on_queued(handle: InFlightRequest, attempt: int) -> None:
            # A throttled first attempt is a background attempt
            if attempt == 0 and handle.throttled and self._fetch_tasks.get(task):
                self._fetch_tasks[task] = False
                if self._status is QueryStatus.LOADING:
                    self._status = (
                        QueryStatus.STALE_SERVING if self._data is not None else QueryStatus.NO_DATA
                    )
                self._publish()

        try:
            value = await fetch_with_retry(
                self._coalescer,
                self.key,
                self._load,
                retry=self.options.retry,
                retry_delay=self.options.retry_delay,
                on_queued=on_queued,
            )
        except Exception as e:
            self._error = e
            if blocking or self._data is None:
                self._status = QueryStatus.ERROR
            else:
                self._status = QueryStatus.STALE_SERVING
            logger.warning(
                f"{'Blocking' if blocking else 'Background'} fetch failed for {self.key}: {e!r}"
            )
            self._invoke(self.options.on_error, e)
            return self._data
        else:
            self._data = value
            self._error = None
            self._status = self._status_from_cache()
            self._invoke(self.options.on_success, value)
            return value
        finally:
            self._fetch_tasks.pop(task, None)
            self._publish()

    def _status_from_cache(self) -> QueryStatus:
        if self._store.freshness(self.key) is Freshness.FRESH:
            return QueryStatus.FRESH
        return QueryStatus.STALE_SERVING

    def _invoke(self, callback: Optional[Callable[[Any], Any]], arg: Any) -> None:
        if callback is None or self.closed:
            return
        try:
            callback(arg)
        except Exception:
            logger.exception(f"Callback failed for {self.key}")

    def __repr__(self) -> str:
        return (
            f"Subscription(key={self.key!r}, status={self._status.value}, "
            f"fetching={self.is_fetching}, closed={self.closed})"
        )
