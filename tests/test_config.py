"""
Tests for environment-driven settings.
"""
import pytest
from pydantic import ValidationError

from resilient_fetch import TransportSettings, get_settings
from resilient_fetch.config import DEFAULT_BASE_URL, parse_paths, parse_status_codes


ENV_NAMES = [
    "API_BASE_URL",
    "VITE_API_BASE_URL",
    "API_TIMEOUT_MS",
    "API_MAX_RETRY_ATTEMPTS",
    "API_RETRY_BASE_DELAY_MS",
    "API_RETRY_MAX_DELAY_MS",
    "API_DEDUP_TTL_MS",
    "API_RETRYABLE_STATUS_CODES",
    "API_RATE_LIMIT_DEFAULT_WAIT_MS",
    "API_RATE_LIMIT_MAX_WAIT_MS",
    "API_RATE_LIMIT_MAX_RETRIES",
    "API_REFRESH_PATH",
    "API_AUTH_EXCLUDED_PATHS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestTransportSettings:
    """Tests for TransportSettings."""

    def test_defaults(self):
        config = TransportSettings().to_config()

        assert config.base_url == DEFAULT_BASE_URL
        assert config.timeout_seconds == 30.0
        assert config.retry.max_attempts == 3
        assert config.retry.base_delay_seconds == 1.0
        assert config.retry.max_delay_seconds == 30.0
        assert config.retry.retryable_statuses == frozenset({408, 500, 502, 503, 504})
        assert config.dedup.ttl_seconds == 5.0
        assert config.dedup.methods == ["GET"]
        assert config.rate_limit.default_wait_seconds == 5.0
        assert config.rate_limit.max_wait_seconds == 60.0
        assert config.rate_limit.max_retries == 10
        assert config.refresh_path == "/auth/refresh"
        assert config.auth_excluded_paths == ("/auth/login", "/auth/refresh")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("API_BASE_URL", "https://api.example.com/v1")
        monkeypatch.setenv("API_TIMEOUT_MS", "1500")
        monkeypatch.setenv("API_MAX_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("API_DEDUP_TTL_MS", "250")
        monkeypatch.setenv("API_RETRYABLE_STATUS_CODES", "500, 503")

        config = TransportSettings().to_config()

        assert config.base_url == "https://api.example.com/v1"
        assert config.timeout_seconds == 1.5
        assert config.retry.max_attempts == 5
        assert config.dedup.ttl_seconds == 0.25
        assert config.retry.retryable_statuses == frozenset({500, 503})

    def test_vite_base_url_alias(self, monkeypatch):
        monkeypatch.setenv("VITE_API_BASE_URL", "https://legacy.example.com/api")
        assert TransportSettings().API_BASE_URL == "https://legacy.example.com/api"

    def test_zero_attempts_rejected(self, monkeypatch):
        monkeypatch.setenv("API_MAX_RETRY_ATTEMPTS", "0")
        with pytest.raises(ValidationError):
            TransportSettings()

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("API_BASE_URL", "https://changed.example.com")
        assert get_settings() is first

        get_settings.cache_clear()
        assert get_settings().API_BASE_URL == "https://changed.example.com"


class TestParsers:
    """Tests for the comma separated list parsers."""

    def test_parse_status_codes(self):
        assert parse_status_codes("408, 500,,503 ") == frozenset({408, 500, 503})

    def test_parse_status_codes_invalid(self):
        with pytest.raises(ValueError):
            parse_status_codes("500,abc")

    def test_parse_paths(self):
        assert parse_paths(" /auth/login , /auth/refresh,") == ("/auth/login", "/auth/refresh")
