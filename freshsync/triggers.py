"""
Background refresh trigger sources.

Both triggers just call back into a subscription; neither knows anything
about fetching or retries.
"""
import asyncio
import logging
from typing import Callable, List, Optional

logger = logging.getLogger("triggers")


class IntervalTrigger:
    """
    Calls ``callback`` every ``interval`` seconds on the running event loop.

    The timer is an asyncio task that sleeps between ticks, so it never
    blocks the loop. stop() cancels it deterministically.
    """

    def __init__(self, interval: float, callback: Callable[[], None], name: str = ""):
        self.interval = interval
        self._callback = callback
        self._name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.interval <= 0 or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.debug(f"Interval trigger started for {self._name} every {self.interval}s")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug(f"Interval trigger stopped for {self._name}")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self._callback()
            except Exception:
                logger.exception(f"Interval callback failed for {self._name}")


class AttentionSignal:
    """
    Broadcasts "the consumer regained attention" (window refocus, tab visible,
    client reconnected...) to registered listeners.
    """

    def __init__(self):
        self._listeners: List[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def notify(self) -> int:
        """
        Fire the signal.

        Returns:
            Number of listeners notified
        """
        listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Attention listener failed")
        return len(listeners)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
