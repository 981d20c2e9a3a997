"""
Backoff and retryability rules for the retry engine.
"""
import asyncio
from typing import FrozenSet, Iterable

import httpx

from ..config import RetryConfig


RETRYABLE_ERROR_NAMES = ["ConnectionError", "TimeoutError", "OSError"]

RETRYABLE_HTTPX_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)

RETRYABLE_MESSAGE_PATTERNS = [
    "network",
    "timeout",
    "timed out",
    "connection",
    "socket",
    "refused",
    "reset",
]


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the exponential backoff delay after ``attempt`` attempts.

    delay = base * 2^(attempt - 1), capped at max_delay_seconds

    Args:
        attempt: Network attempts made so far (1 after the original request)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    exponent = max(attempt - 1, 0)
    return min(config.max_delay_seconds, config.base_delay_seconds * (2 ** exponent))


def is_retryable_error(error: BaseException) -> bool:
    """
    Check if a failure without a response should trigger a retry.

    Args:
        error: The error raised while sending

    Returns:
        Whether the error is retryable
    """
    if isinstance(error, RETRYABLE_HTTPX_ERRORS):
        return True

    if isinstance(error, httpx.HTTPError):
        # Other httpx errors (unsupported protocol, bad redirects) are not transient
        return False

    for base in type(error).__mro__:
        if base.__name__ in RETRYABLE_ERROR_NAMES:
            return True

    message = str(error).lower()
    if any(pattern in message for pattern in RETRYABLE_MESSAGE_PATTERNS):
        return True

    if error.__cause__ is not None:
        return is_retryable_error(error.__cause__)

    return False


def is_retryable_status(status: int, retryable_statuses: Iterable[int]) -> bool:
    """
    Check if an HTTP status code should trigger a backoff retry.

    Args:
        status: The HTTP status code
        retryable_statuses: Configured retryable statuses

    Returns:
        Whether the status is retryable
    """
    return status in retryable_statuses


def normalize_statuses(statuses: Iterable[int]) -> FrozenSet[int]:
    """429 always belongs to the rate-limit handler, never to backoff retry."""
    return frozenset(s for s in statuses if s != 429)


async def async_sleep(seconds: float) -> None:
    """
    Sleep for a specified duration (async).

    Args:
        seconds: Duration in seconds
    """
    await asyncio.sleep(seconds)
