"""
Rate-limit (429) handling.
"""
import logging
import time
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Optional

import httpx

from ..config import RateLimitConfig
from ..events import EventEmitter
from ..retry.policy import async_sleep
from ..types import TransportEventType

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse Retry-After header value.

    The Retry-After header can contain either:
    - A number of seconds to wait
    - An HTTP-date indicating when to retry

    Args:
        value: Retry-After header value

    Returns:
        Wait time in seconds, or None if missing or unparseable
    """
    if not value:
        return None

    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return seconds if seconds >= 0 else None

    try:
        dt = parsedate_to_datetime(value)
    except (ValueError, TypeError, IndexError):
        return None
    if dt is None:
        return None
    return max(0.0, dt.timestamp() - time.time())


class RateLimitHandler(EventEmitter):
    """
    Honours server-dictated waits on 429 responses.

    Each 429 costs exactly one wait and one reissue; nothing grows
    exponentially and no retry-engine attempt is consumed.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        super().__init__()
        self._config = config or RateLimitConfig()
        self._sleep = sleep or async_sleep

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    def delay_for(self, response: httpx.Response) -> float:
        """Wait in seconds for a 429 response, capped at max_wait_seconds."""
        delay = parse_retry_after(response.headers.get("retry-after"))
        if delay is None:
            delay = self._config.default_wait_seconds
        return min(delay, self._config.max_wait_seconds)

    def can_retry(self, throttled_count: int) -> bool:
        """Whether another reissue is allowed after ``throttled_count`` 429s."""
        limit = self._config.max_retries
        return limit is None or throttled_count <= limit

    async def wait(self, response: httpx.Response, key: str = "") -> float:
        """Sleep for the server-dictated delay. Returns the delay used."""
        delay = self.delay_for(response)
        logger.warning(f"RateLimitHandler.wait: {key} throttled (429), waiting {delay:.3f}s")
        self._emit(TransportEventType.RATE_LIMIT_WAIT, key, {"delay_seconds": delay})
        if delay > 0:
            await self._sleep(delay)
        return delay


def create_rate_limit_handler(
    config: Optional[RateLimitConfig] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> RateLimitHandler:
    """Create a new rate-limit handler."""
    return RateLimitHandler(config, sleep)
