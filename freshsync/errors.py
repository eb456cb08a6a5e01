"""
Fetch error taxonomy.

Retryable: 5xx, 429 (too many requests) and transport failures.
Terminal: every other 4xx (bad request, unauthorized, forbidden, not found...).
Exhausted: a retryable failure that used up its retries.
"""
from enum import Enum
from typing import Optional

import requests


class ErrorKind(Enum):
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


class FreshSyncError(Exception):
    """Base class for errors raised by freshsync."""


class FetchError(FreshSyncError):
    """
    Failure raised by a fetch function.

    Fetch functions may raise anything; this class just gives them a way to
    attach an HTTP-style status code for classification.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} ({self.status_code})" if self.status_code is not None else base


class RequestCancelledError(FreshSyncError):
    """The shared in-flight request was cancelled through the coalescer."""

    def __init__(self, key: str):
        super().__init__(f"Request cancelled: {key}")
        self.key = key


class RetriesExhaustedError(FreshSyncError):
    """A retryable failure persisted through every retry attempt."""

    def __init__(self, key: str, attempts: int, last_error: BaseException):
        super().__init__(f"Fetch for {key} failed after {attempts} attempts: {last_error}")
        self.key = key
        self.attempts = attempts
        self.last_error = last_error


def get_status_code(error: BaseException) -> Optional[int]:
    """Extract an HTTP status code from an exception, if it carries one."""
    if isinstance(error, requests.HTTPError) and error.response is not None:
        return error.response.status_code

    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_error(error: BaseException) -> ErrorKind:
    """
    Decide whether a failed fetch may be retried.

    Errors without a status code (network failures, timeouts, unexpected
    exceptions) are treated as transient.
    """
    if isinstance(error, (RequestCancelledError, RetriesExhaustedError)):
        return ErrorKind.TERMINAL

    status = get_status_code(error)
    if status is None:
        return ErrorKind.RETRYABLE
    if status == 429 or status >= 500:
        return ErrorKind.RETRYABLE
    if 400 <= status < 500:
        return ErrorKind.TERMINAL
    return ErrorKind.RETRYABLE


def is_retryable(error: BaseException) -> bool:
    return classify_error(error) is ErrorKind.RETRYABLE
