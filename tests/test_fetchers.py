"""
Tests for the HTTP JSON fetcher adapter.
"""
import asyncio
from unittest.mock import Mock

import pytest
import requests

from freshsync.errors import ErrorKind, classify_error
from freshsync.fetchers import json_fetcher


def test_json_fetcher_returns_body():
    session = Mock()
    session.get.return_value.json.return_value = {"pools": []}
    fetch = json_fetcher(
        "https://api.example.com/liquidity/pools",
        params={"limit": 5},
        session=session,
        timeout=5,
    )

    assert asyncio.run(fetch()) == {"pools": []}
    session.get.assert_called_once_with(
        "https://api.example.com/liquidity/pools",
        params={"limit": 5},
        headers=None,
        timeout=5,
    )


def test_json_fetcher_raises_http_error():
    response = requests.Response()
    response.status_code = 503
    session = Mock()
    session.get.return_value.raise_for_status.side_effect = requests.HTTPError(
        "503 Server Error", response=response
    )
    fetch = json_fetcher("https://api.example.com/holders", session=session)

    with pytest.raises(requests.HTTPError) as exc_info:
        asyncio.run(fetch())
    assert classify_error(exc_info.value) is ErrorKind.RETRYABLE
