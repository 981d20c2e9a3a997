"""
Retry engine: decides whether and when a failed attempt is re-issued.
"""
import logging
from typing import Awaitable, Callable, Optional, Union

import httpx

from ..config import RetryConfig
from ..events import EventEmitter
from ..types import RetryDecision, RetryState, TransportEventType
from .policy import (
    async_sleep,
    calculate_backoff_delay,
    is_retryable_error,
    is_retryable_status,
    normalize_statuses,
)

logger = logging.getLogger(__name__)

Failure = Union[BaseException, httpx.Response, int]


class RetryEngine(EventEmitter):
    """
    Retry Engine

    Provides:
    - A fresh RetryState per logical request
    - Classification of network failures and retryable statuses
    - Exponential backoff (base, base*2, base*4, ...)
    - An injectable sleep so tests do not wait in real time
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        super().__init__()
        self._config = config or RetryConfig()
        self._retryable_statuses = normalize_statuses(self._config.retryable_statuses)
        self._sleep = sleep or async_sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    def new_state(self) -> RetryState:
        """Create retry bookkeeping for one logical request."""
        return RetryState(
            max_attempts=self._config.max_attempts,
            base_delay_seconds=self._config.base_delay_seconds,
            retryable_statuses=self._retryable_statuses,
        )

    def begin_attempt(self, state: RetryState) -> int:
        """Record that a network attempt is about to be made."""
        state.attempt += 1
        return state.attempt

    def is_retryable(self, failure: Failure, state: Optional[RetryState] = None) -> bool:
        statuses = state.retryable_statuses if state else self._retryable_statuses
        if isinstance(failure, BaseException):
            return is_retryable_error(failure)
        status = failure.status_code if isinstance(failure, httpx.Response) else failure
        return is_retryable_status(status, statuses)

    def should_retry(self, failure: Failure, state: RetryState, key: str = "") -> RetryDecision:
        """
        Decide whether to re-issue a request after ``failure``.

        Args:
            failure: The exception raised (no response) or the response/status received
            state: Retry state of the logical request
            key: Identifier used in logs and events

        Returns:
            RetryDecision with the backoff delay when a retry is granted
        """
        if not self.is_retryable(failure, state):
            return RetryDecision(retry=False)

        if state.attempt >= state.max_attempts:
            logger.warning(
                f"RetryEngine.should_retry: {key} exhausted after {state.attempt} attempts"
            )
            self._emit(
                TransportEventType.RETRY_EXHAUSTED,
                key,
                {"attempts": state.attempt, "failure": _describe(failure)},
            )
            return RetryDecision(retry=False)

        delay = calculate_backoff_delay(state.attempt, self._config)
        logger.warning(
            f"RetryEngine.should_retry: {key} attempt {state.attempt}/{state.max_attempts} "
            f"failed ({_describe(failure)}), retrying in {delay:.3f}s"
        )
        self._emit(
            TransportEventType.RETRY_WAIT,
            key,
            {
                "attempt": state.attempt,
                "delay_seconds": delay,
                "failure": _describe(failure),
            },
        )
        return RetryDecision(retry=True, delay_seconds=delay)

    async def wait(self, decision: RetryDecision) -> None:
        """Sleep for the decision's backoff delay."""
        if decision.delay_seconds > 0:
            await self._sleep(decision.delay_seconds)


def _describe(failure: Failure) -> str:
    if isinstance(failure, BaseException):
        return f"{type(failure).__name__}: {failure}"
    if isinstance(failure, httpx.Response):
        return f"HTTP {failure.status_code}"
    return f"HTTP {failure}"


def create_retry_engine(
    config: Optional[RetryConfig] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> RetryEngine:
    """Create a new retry engine."""
    return RetryEngine(config, sleep)
