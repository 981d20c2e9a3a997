"""
Types for resilient_fetch package.
"""
import asyncio
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple


QueryParams = List[Tuple[str, str]]
"""Ordered query parameters as (key, value) pairs."""


class AttemptKind(str, Enum):
    """Why a request descriptor is being sent."""

    ORIGINAL = "original"
    REFRESHED_RETRY = "refreshed-retry"
    BACKOFF_RETRY = "backoff-retry"
    THROTTLED_RETRY = "throttled-retry"


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Immutable description of one logical outgoing request.

    Retries never modify a descriptor in place; they clone it with
    ``dataclasses.replace`` so the original stays as the caller built it.
    """

    method: str
    url: str
    request_id: str
    params: QueryParams = field(default_factory=list)
    json: Any = None
    content: Optional[bytes] = None
    headers: Dict[str, str] = field(default_factory=dict)
    dedupe: bool = False
    skip_auth_refresh: bool = False
    timeout_seconds: Optional[float] = None
    attempt_kind: AttemptKind = AttemptKind.ORIGINAL
    auth_refreshed: bool = False
    """Set once the request has been replayed after a token refresh."""
    bearer_token: Optional[str] = None
    """Explicit access token, overriding the credential store."""

    def for_backoff_retry(self) -> "RequestDescriptor":
        return dataclasses.replace(self, attempt_kind=AttemptKind.BACKOFF_RETRY)

    def for_throttled_retry(self) -> "RequestDescriptor":
        return dataclasses.replace(self, attempt_kind=AttemptKind.THROTTLED_RETRY)

    def for_refreshed_retry(self, access_token: str) -> "RequestDescriptor":
        return dataclasses.replace(
            self,
            attempt_kind=AttemptKind.REFRESHED_RETRY,
            auth_refreshed=True,
            bearer_token=access_token,
        )


@dataclass
class PendingRequestEntry:
    """In-flight request tracked by the dedup cache."""

    fingerprint: str
    """Fingerprint the entry is keyed by."""

    future: "asyncio.Future[Any]"
    """Task that resolves when the underlying call settles."""

    inserted_at: float
    """Clock reading when the entry was stored."""

    subscribers: int = 1
    """Number of callers sharing this entry."""


@dataclass
class RetryState:
    """Per-request retry bookkeeping."""

    max_attempts: int
    base_delay_seconds: float
    retryable_statuses: FrozenSet[int]
    attempt: int = 0
    """Network attempts made so far, including the original."""


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of a retry check."""

    retry: bool
    delay_seconds: float = 0.0


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh token pair returned by the refresh endpoint."""

    access_token: str
    refresh_token: str
    expires_in: Optional[int] = None
    token_type: str = "Bearer"

    def __repr__(self) -> str:
        return (
            f"TokenPair(access_token=<masked>, refresh_token=<masked>, "
            f"expires_in={self.expires_in!r}, token_type={self.token_type!r})"
        )


class RefreshState(str, Enum):
    """Refresh coordinator state."""

    IDLE = "idle"
    REFRESHING = "refreshing"


class TransportEventType(str, Enum):
    """Event types emitted by the transport services."""

    DEDUP_LEAD = "dedup:lead"
    DEDUP_JOIN = "dedup:join"
    DEDUP_RELEASE = "dedup:release"
    DEDUP_EXPIRE = "dedup:expire"
    RETRY_WAIT = "retry:wait"
    RETRY_EXHAUSTED = "retry:exhausted"
    REFRESH_START = "refresh:start"
    REFRESH_SUCCESS = "refresh:success"
    REFRESH_FAILURE = "refresh:failure"
    RATE_LIMIT_WAIT = "rate_limit:wait"


@dataclass
class TransportEvent:
    """Transport event."""

    type: TransportEventType
    key: str
    timestamp: float
    metadata: Optional[Dict[str, Any]] = None


TransportEventListener = Callable[[TransportEvent], None]
"""Event listener type."""
