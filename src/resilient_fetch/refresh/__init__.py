"""
Credential storage and single-flight token refresh.
"""
from .coordinator import RefreshCoordinator, SessionExpiredHandler
from .credentials import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_KEY,
    CredentialStore,
    KeyValueCredentialStore,
    MemoryCredentialStore,
)
from .refresher import HttpTokenRefresher, TokenRefresher, parse_token_pair


__all__ = [
    "RefreshCoordinator",
    "SessionExpiredHandler",
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "USER_KEY",
    "CredentialStore",
    "KeyValueCredentialStore",
    "MemoryCredentialStore",
    "HttpTokenRefresher",
    "TokenRefresher",
    "parse_token_pair",
]
