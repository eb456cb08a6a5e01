"""
Retry with exponential backoff on top of the request coalescer.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from freshsync.cache.coalescer import InFlightRequest, RequestCoalescer
from freshsync.errors import ErrorKind, RetriesExhaustedError, classify_error

logger = logging.getLogger("retry")

DEFAULT_RETRY = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds, doubled after every failed attempt


def backoff_delay(attempt: int, base_delay: float = DEFAULT_RETRY_DELAY) -> float:
    """Delay after the failure of attempt ``attempt`` (0-based): base * 2^attempt."""
    return base_delay * (2 ** attempt)


async def fetch_with_retry(
    coalescer: RequestCoalescer,
    key: str,
    factory: Callable[[], Awaitable[Any]],
    retry: int = DEFAULT_RETRY,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    on_queued: Optional[Callable[[InFlightRequest, int], None]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """
    Run ``factory`` through the coalescer, retrying transient failures.

    Every attempt goes through coalescer.queue(), so retries from several
    subscribers of one key still share a single upstream call. Only the first
    attempt asks for throttling.

    Args:
        coalescer: Shared request coalescer
        key: Cache key of the resource
        factory: Coroutine function performing one attempt
        retry: Retries after the first attempt (total calls <= retry + 1)
        retry_delay: Base backoff delay in seconds
        on_queued: Called with (handle, attempt) each time an attempt is queued
        sleep: Awaitable sleep used between attempts

    Returns:
        The fetched value

    Raises:
        The original error for terminal failures, RetriesExhaustedError once
        retries are used up.
    """
    attempt = 0
    while True:
        handle = coalescer.queue(key, factory, throttle=attempt == 0)
        if on_queued is not None:
            on_queued(handle, attempt)

        try:
            return await handle
        except Exception as e:
            if classify_error(e) is ErrorKind.TERMINAL:
                logger.info(f"Not retrying {key}: {e!r}")
                raise
            if attempt >= retry:
                raise RetriesExhaustedError(key, attempt + 1, e) from e

            delay = backoff_delay(attempt, retry_delay)
            logger.info(
                f"Retrying {key} in {delay:.2f}s "
                f"(attempt {attempt + 1}/{retry}): {e!r}"
            )
            await sleep(delay)
            attempt += 1
