"""
Configuration for resilient_fetch.

Settings are read once from the environment with pydantic-settings and
converted into plain dataclasses that the services take as constructor
arguments.
"""
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, List, Optional, Tuple

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "http://localhost:3000/api"
DEFAULT_RETRYABLE_STATUSES: FrozenSet[int] = frozenset({408, 500, 502, 503, 504})
DEFAULT_AUTH_EXCLUDED_PATHS: Tuple[str, ...] = ("/auth/login", "/auth/refresh")


@dataclass
class RetryConfig:
    """Retry engine configuration"""

    max_attempts: int = 3
    """Total network attempts per logical request, including the original."""

    base_delay_seconds: float = 1.0
    """Delay before the first retry; doubles for each further retry."""

    max_delay_seconds: float = 30.0
    """Upper bound for a single backoff delay."""

    retryable_statuses: FrozenSet[int] = DEFAULT_RETRYABLE_STATUSES
    """HTTP statuses handled by backoff retry (429 is handled separately)."""


@dataclass
class DedupConfig:
    """Deduplication cache configuration"""

    ttl_seconds: float = 5.0
    """Age after which an in-flight entry is no longer shared."""

    methods: List[str] = field(default_factory=lambda: ["GET"])
    """HTTP methods that may be deduplicated when the caller opts in."""


@dataclass
class RateLimitConfig:
    """Rate-limit handler configuration"""

    default_wait_seconds: float = 5.0
    """Wait used when a 429 carries no usable Retry-After."""

    max_wait_seconds: float = 60.0
    """Cap applied to any single server-dictated wait."""

    max_retries: Optional[int] = 10
    """Consecutive 429s tolerated per logical request. None means unbounded."""


@dataclass
class TransportConfig:
    """Complete transport configuration."""

    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    dedup: DedupConfig = field(default_factory=DedupConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    refresh_path: str = "/auth/refresh"
    auth_excluded_paths: Tuple[str, ...] = DEFAULT_AUTH_EXCLUDED_PATHS


def parse_status_codes(value: str) -> FrozenSet[int]:
    """Parse a comma separated list of status codes ("408, 500,503")."""
    codes = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            codes.add(int(part))
        except ValueError:
            raise ValueError(f"Invalid status code in API_RETRYABLE_STATUS_CODES: {part!r}")
    return frozenset(codes)


def parse_paths(value: str) -> Tuple[str, ...]:
    """Parse a comma separated list of URL paths."""
    return tuple(part.strip() for part in value.split(",") if part.strip())


class TransportSettings(BaseSettings):
    """Transport settings loaded from environment variables."""

    model_config = SettingsConfigDict(case_sensitive=True, env_file=None, extra="ignore")

    API_BASE_URL: str = Field(
        default=DEFAULT_BASE_URL,
        validation_alias=AliasChoices("API_BASE_URL", "VITE_API_BASE_URL"),
    )
    API_TIMEOUT_MS: int = Field(default=30000, gt=0)
    API_MAX_RETRY_ATTEMPTS: int = Field(default=3, ge=1)
    API_RETRY_BASE_DELAY_MS: int = Field(default=1000, ge=0)
    API_RETRY_MAX_DELAY_MS: int = Field(default=30000, ge=0)
    API_DEDUP_TTL_MS: int = Field(default=5000, ge=0)
    API_RETRYABLE_STATUS_CODES: str = "408,500,502,503,504"
    API_RATE_LIMIT_DEFAULT_WAIT_MS: int = Field(default=5000, ge=0)
    API_RATE_LIMIT_MAX_WAIT_MS: int = Field(default=60000, ge=0)
    API_RATE_LIMIT_MAX_RETRIES: int = Field(default=10, ge=0)
    API_REFRESH_PATH: str = "/auth/refresh"
    API_AUTH_EXCLUDED_PATHS: str = ",".join(DEFAULT_AUTH_EXCLUDED_PATHS)

    def to_config(self) -> TransportConfig:
        """Convert millisecond env values into a TransportConfig."""
        return TransportConfig(
            base_url=self.API_BASE_URL,
            timeout_seconds=self.API_TIMEOUT_MS / 1000,
            retry=RetryConfig(
                max_attempts=self.API_MAX_RETRY_ATTEMPTS,
                base_delay_seconds=self.API_RETRY_BASE_DELAY_MS / 1000,
                max_delay_seconds=self.API_RETRY_MAX_DELAY_MS / 1000,
                retryable_statuses=parse_status_codes(self.API_RETRYABLE_STATUS_CODES),
            ),
            dedup=DedupConfig(ttl_seconds=self.API_DEDUP_TTL_MS / 1000),
            rate_limit=RateLimitConfig(
                default_wait_seconds=self.API_RATE_LIMIT_DEFAULT_WAIT_MS / 1000,
                max_wait_seconds=self.API_RATE_LIMIT_MAX_WAIT_MS / 1000,
                max_retries=self.API_RATE_LIMIT_MAX_RETRIES,
            ),
            refresh_path=self.API_REFRESH_PATH,
            auth_excluded_paths=parse_paths(self.API_AUTH_EXCLUDED_PATHS),
        )


@lru_cache()
def get_settings() -> TransportSettings:
    """Get cached settings instance."""
    return TransportSettings()
