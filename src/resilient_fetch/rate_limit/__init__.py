"""
Server-dictated back-off for throttled (429) responses.
"""
from .handler import RateLimitHandler, create_rate_limit_handler, parse_retry_after


__all__ = [
    "RateLimitHandler",
    "create_rate_limit_handler",
    "parse_retry_after",
]
