"""Pytest configuration and fixtures for resilient_fetch tests."""
import asyncio
from typing import Awaitable, Callable, List, Optional

import httpx
import pytest

from resilient_fetch import (
    DedupConfig,
    MemoryCredentialStore,
    RateLimitConfig,
    ResilientClient,
    RetryConfig,
    TransportConfig,
)


BASE_URL = "https://api.example.com/api"


class RecordingSleep:
    """Async sleep double that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingCredentialStore(MemoryCredentialStore):
    """Memory credential store that counts clear() calls."""

    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None):
        super().__init__(access_token, refresh_token)
        self.clear_calls = 0

    def clear(self) -> None:
        self.clear_calls += 1
        super().clear()


Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


def make_config(**overrides) -> TransportConfig:
    """Transport config with small delays suitable for tests."""
    config = TransportConfig(
        base_url=BASE_URL,
        timeout_seconds=5.0,
        retry=RetryConfig(max_attempts=3, base_delay_seconds=0.1, max_delay_seconds=10.0),
        dedup=DedupConfig(ttl_seconds=5.0),
        rate_limit=RateLimitConfig(default_wait_seconds=5.0, max_wait_seconds=60.0),
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credentials() -> CountingCredentialStore:
    return CountingCredentialStore(access_token="old-access", refresh_token="refresh-1")


@pytest.fixture
async def make_client(recording_sleep, fake_clock, credentials):
    """Factory building a ResilientClient over an httpx.MockTransport handler."""
    clients: List[ResilientClient] = []
    httpx_clients: List[httpx.AsyncClient] = []

    def factory(handler: Handler, config: Optional[TransportConfig] = None, **kwargs) -> ResilientClient:
        httpx_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        kwargs.setdefault("credentials", credentials)
        client = ResilientClient(
            config or make_config(),
            httpx_client=httpx_client,
            sleep=recording_sleep,
            clock=fake_clock,
            **kwargs,
        )
        clients.append(client)
        httpx_clients.append(httpx_client)
        return client

    yield factory

    for client in clients:
        await client.aclose()
    for httpx_client in httpx_clients:
        await httpx_client.aclose()
