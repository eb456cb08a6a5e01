"""
HTTP fetch function adapter.

Builds caller-supplied fetch functions on top of requests. The blocking
call runs in a worker thread so the event loop never stalls; HTTP error
statuses surface as requests.HTTPError, which freshsync.errors classifies.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

import requests

from config.settings import settings

logger = logging.getLogger("fetchers")


def json_fetcher(
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> Callable[[], Awaitable[Any]]:
    """
    Create a fetch function that GETs ``url`` and returns the decoded JSON body.

    Args:
        url: Absolute URL to fetch
        params: Query parameters
        session: requests session to reuse connections (a new one per call if omitted)
        timeout: Request timeout in seconds (default: settings.http_timeout_seconds)
        headers: Extra request headers

    Returns:
        Zero-argument coroutine function suitable for QueryOrchestrator.subscribe()
    """
    timeout = settings.http_timeout_seconds if timeout is None else timeout

    def _get() -> Any:
        http = session or requests
        response = http.get(
            url,
            params=dict(params) if params else None,
            headers=dict(headers) if headers else None,
            timeout=timeout,
        )
        response.raise_for_status()
        return response.json()

    async def fetch() -> Any:
        logger.debug(f"GET {url} params={params}")
        return await asyncio.to_thread(_get)

    return fetch
