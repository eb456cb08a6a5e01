"""
Request coalescing to prevent duplicate upstream calls.

When multiple concurrent callers ask for the same key, only one
upstream call is made and all callers share the result.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from freshsync.errors import RequestCancelledError

logger = logging.getLogger("cache.coalescer")

DEFAULT_THROTTLE_WINDOW = 1.0   # seconds between completed and next call for one key
DEFAULT_MAX_CONCURRENT = 10     # distinct keys fetching at once


@dataclass(eq=False)
class InFlightRequest:
    """
    Tracks an in-progress upstream request.

    This is the shared result handle: every caller for the key awaits the
    same object. Awaiting is shielded, so a caller being cancelled never
    cancels the fetch the others depend on.
    """
    key: str
    task: "asyncio.Task[Any]"
    started_at: float
    throttled: bool = False
    waiter_count: int = 1

    async def result(self) -> Any:
        try:
            return await asyncio.shield(self.task)
        except asyncio.CancelledError:
            if self.task.cancelled():
                raise RequestCancelledError(self.key) from None
            raise

    def __await__(self):
        return self.result().__await__()

    def done(self) -> bool:
        return self.task.done()


class RequestCoalescer:
    """
    Ensures concurrent requests for the same key share one upstream call.

    Pattern:
    - First request for a key creates a task running the factory
    - Subsequent requests for the same key get the same handle back
    - When the task settles, the record is dropped so the next call starts fresh
    - A throttled call arriving right after a completed one is deferred and
      marked as a background attempt

    Usage:
        coalescer = RequestCoalescer()
        handle = coalescer.queue("holders:{}", fetch_holders)
        result = await handle
    """

    def __init__(
        self,
        throttle_window: float = DEFAULT_THROTTLE_WINDOW,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the coalescer.

        Args:
            throttle_window: Seconds after a completed call during which a
                throttled call for the same key is deferred
            max_concurrent: Max factories running at the same time
            clock: Time source in seconds; injectable for tests
        """
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._last_completed: Dict[str, float] = {}
        # Created on first use and rebuilt per event loop
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop: Optional[asyncio.AbstractEventLoop] = None
        self.throttle_window = throttle_window
        self.max_concurrent = max(1, max_concurrent)
        self._clock = clock

        self._stats = {
            "started": 0,
            "coalesced": 0,
            "throttled": 0,
            "failed": 0,
        }

    def queue(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        throttle: bool = False,
    ) -> InFlightRequest:
        """
        Either join an existing in-flight request or start a new one.

        Must be called with a running event loop. Never raises on behalf of
        the factory; failures are delivered when the handle is awaited.

        Args:
            key: Unique key for this request
            factory: Zero-argument coroutine function performing the fetch
            throttle: Defer the start if the last call for key completed
                within the throttle window

        Returns:
            The shared InFlightRequest handle
        """
        in_flight = self._in_flight.get(key)
        if in_flight is not None:
            in_flight.waiter_count += 1
            self._stats["coalesced"] += 1
            logger.debug(
                f"Coalescing request for {key} "
                f"(waiters: {in_flight.waiter_count})"
            )
            return in_flight

        now = self._clock()
        delay = 0.0
        if throttle:
            last = self._last_completed.get(key)
            if last is not None and now - last < self.throttle_window:
                delay = self.throttle_window - (now - last)

        task = asyncio.get_running_loop().create_task(self._run(key, factory, delay))
        in_flight = InFlightRequest(key=key, task=task, started_at=now, throttled=delay > 0)
        self._in_flight[key] = in_flight
        task.add_done_callback(lambda t: self._on_settled(key, t))

        self._stats["started"] += 1
        if in_flight.throttled:
            self._stats["throttled"] += 1
            logger.debug(f"Throttling fetch for {key} by {delay:.2f}s")
        else:
            logger.debug(f"Initiating fetch for {key}")
        return in_flight

    async def _run(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        delay: float,
    ) -> Any:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            async with self._get_semaphore():
                return await factory()
        finally:
            # Clear the slot as soon as the fetch settles, before waiters resume
            current = self._in_flight.get(key)
            if current is not None and current.task is asyncio.current_task():
                del self._in_flight[key]
            now = self._clock()
            self._last_completed[key] = now
            self._prune_history(now)

    def _get_semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
            self._semaphore_loop = loop
        return self._semaphore

    def _prune_history(self, now: float) -> None:
        """Forget completion times that can no longer throttle anything."""
        expired = [k for k, t in self._last_completed.items() if now - t >= self.throttle_window]
        for k in expired:
            del self._last_completed[k]

    def _on_settled(self, key: str, task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            logger.debug(f"Fetch cancelled for {key}")
            return
        error = task.exception()
        if error is not None:
            self._stats["failed"] += 1
            logger.warning(f"Fetch failed for {key}: {error!r}")

    def cancel(self, key: str) -> bool:
        """
        Cancel a pending request. Waiters receive RequestCancelledError.

        Returns:
            True if a pending request was found
        """
        in_flight = self._in_flight.pop(key, None)
        if in_flight is None:
            return False
        in_flight.task.cancel()
        logger.info(f"Cancelled pending request: {key}")
        return True

    def cancel_all(self) -> int:
        """Cancel every pending request, returning how many were cancelled."""
        pending = list(self._in_flight.values())
        self._in_flight.clear()
        self._last_completed.clear()
        for in_flight in pending:
            in_flight.task.cancel()
        if pending:
            logger.info(f"Cancelled {len(pending)} pending requests")
        return len(pending)

    def is_pending(self, key: str) -> bool:
        return key in self._in_flight

    def get(self, key: str):
        return self._in_flight.get(key)

    @property
    def pending_count(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
            "throttle_history": len(self._last_completed),
            **self._stats,
        }
