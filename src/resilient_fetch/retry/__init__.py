"""
Exponential-backoff retry for transient failures.
"""
from .engine import RetryEngine, create_retry_engine
from .policy import (
    async_sleep,
    calculate_backoff_delay,
    is_retryable_error,
    is_retryable_status,
    normalize_statuses,
)


__all__ = [
    "RetryEngine",
    "create_retry_engine",
    "async_sleep",
    "calculate_backoff_delay",
    "is_retryable_error",
    "is_retryable_status",
    "normalize_statuses",
]
