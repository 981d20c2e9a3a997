"""
Resilient API transport: request de-duplication, exponential-backoff retry,
single-flight token refresh and rate-limit back-off over httpx.
"""
from .client import ResilientClient, create_resilient_client, extract_response_data
from .config import (
    DedupConfig,
    RateLimitConfig,
    RetryConfig,
    TransportConfig,
    TransportSettings,
    get_settings,
)
from .dedup import DedupCache, MemoryPendingStore, PendingRequestStore
from .errors import ApiError, ResilientFetchError, SessionExpiredError
from .fingerprint import canonical_request, generate_fingerprint
from .pipeline import Outcome, classify_error, classify_response
from .rate_limit import RateLimitHandler, parse_retry_after
from .refresh import (
    CredentialStore,
    HttpTokenRefresher,
    KeyValueCredentialStore,
    MemoryCredentialStore,
    RefreshCoordinator,
    SessionExpiredHandler,
    TokenRefresher,
)
from .retry import RetryEngine, calculate_backoff_delay
from .types import (
    AttemptKind,
    PendingRequestEntry,
    RefreshState,
    RequestDescriptor,
    RetryDecision,
    RetryState,
    TokenPair,
    TransportEvent,
    TransportEventListener,
    TransportEventType,
)


__all__ = [
    # Client
    "ResilientClient",
    "create_resilient_client",
    "extract_response_data",
    # Config
    "DedupConfig",
    "RateLimitConfig",
    "RetryConfig",
    "TransportConfig",
    "TransportSettings",
    "get_settings",
    # Dedup
    "DedupCache",
    "MemoryPendingStore",
    "PendingRequestStore",
    "canonical_request",
    "generate_fingerprint",
    # Errors
    "ApiError",
    "ResilientFetchError",
    "SessionExpiredError",
    # Pipeline
    "Outcome",
    "classify_error",
    "classify_response",
    # Rate limit
    "RateLimitHandler",
    "parse_retry_after",
    # Refresh
    "CredentialStore",
    "HttpTokenRefresher",
    "KeyValueCredentialStore",
    "MemoryCredentialStore",
    "RefreshCoordinator",
    "SessionExpiredHandler",
    "TokenRefresher",
    # Retry
    "RetryEngine",
    "calculate_backoff_delay",
    # Types
    "AttemptKind",
    "PendingRequestEntry",
    "RefreshState",
    "RequestDescriptor",
    "RetryDecision",
    "RetryState",
    "TokenPair",
    "TransportEvent",
    "TransportEventListener",
    "TransportEventType",
]

__version__ = "1.0.0"
