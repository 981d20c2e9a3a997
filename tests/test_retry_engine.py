"""
Tests for the retry engine and backoff policy.

Test coverage includes:
- Boundary value testing: first/last permitted attempt
- Equivalence partitioning: network errors, retryable and terminal statuses
- Delay progression: base, base*2, capped
"""
import asyncio

import httpx
import pytest

from resilient_fetch import RetryConfig, RetryEngine, TransportEventType, calculate_backoff_delay
from resilient_fetch.retry import (
    create_retry_engine,
    is_retryable_error,
    is_retryable_status,
    normalize_statuses,
)

from conftest import RecordingSleep


class TestCalculateBackoffDelay:
    """Tests for calculate_backoff_delay."""

    def test_first_retry_waits_base_delay(self):
        config = RetryConfig(base_delay_seconds=1.0)
        assert calculate_backoff_delay(1, config) == 1.0

    def test_delay_doubles(self):
        config = RetryConfig(base_delay_seconds=0.5, max_delay_seconds=100)
        assert [calculate_backoff_delay(n, config) for n in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 4.0]

    def test_delay_is_capped(self):
        config = RetryConfig(base_delay_seconds=10, max_delay_seconds=15)
        assert calculate_backoff_delay(3, config) == 15

    def test_attempt_zero_is_treated_as_first(self):
        assert calculate_backoff_delay(0, RetryConfig(base_delay_seconds=2)) == 2


class TestIsRetryableError:
    """Tests for is_retryable_error."""

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            httpx.ConnectTimeout("slow"),
            httpx.RemoteProtocolError("server hung up"),
            ConnectionResetError(),
            TimeoutError(),
            OSError("unreachable"),
        ],
    )
    def test_network_failures_are_retryable(self, error):
        assert is_retryable_error(error) is True

    def test_unsupported_protocol_is_not_retryable(self):
        assert is_retryable_error(httpx.UnsupportedProtocol("ftp")) is False

    def test_plain_value_error_is_not_retryable(self):
        assert is_retryable_error(ValueError("bad input")) is False

    def test_message_pattern_is_retryable(self):
        assert is_retryable_error(RuntimeError("Network unreachable")) is True

    def test_cause_chain_is_checked(self):
        error = RuntimeError("wrapped")
        error.__cause__ = ConnectionRefusedError()
        assert is_retryable_error(error) is True


class TestIsRetryableStatus:
    """Tests for is_retryable_status and normalize_statuses."""

    @pytest.mark.parametrize("status", [408, 500, 502, 503, 504])
    def test_default_retryable_statuses(self, status):
        assert is_retryable_status(status, RetryConfig().retryable_statuses)

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422, 429, 501])
    def test_non_retryable_statuses(self, status):
        assert not is_retryable_status(status, RetryConfig().retryable_statuses)

    def test_normalize_drops_429(self):
        assert normalize_statuses([429, 503]) == frozenset({503})


class TestRetryEngine:
    """Tests for RetryEngine."""

    @pytest.fixture
    def engine(self) -> RetryEngine:
        return RetryEngine(RetryConfig(max_attempts=3, base_delay_seconds=0.1))

    def test_new_state(self, engine):
        state = engine.new_state()
        assert state.attempt == 0
        assert state.max_attempts == 3
        assert state.base_delay_seconds == 0.1
        assert 503 in state.retryable_statuses

    def test_configured_429_is_excluded_from_state(self):
        engine = RetryEngine(RetryConfig(retryable_statuses=frozenset({429, 500})))
        assert engine.new_state().retryable_statuses == frozenset({500})

    def test_grants_retries_with_doubling_delay(self, engine):
        state = engine.new_state()
        decisions = []
        for _ in range(3):
            engine.begin_attempt(state)
            decisions.append(engine.should_retry(503, state))

        assert [d.retry for d in decisions] == [True, True, False]
        assert [d.delay_seconds for d in decisions[:2]] == [0.1, 0.2]
        assert state.attempt == 3

    def test_attempt_never_exceeds_max(self, engine):
        state = engine.new_state()
        engine.begin_attempt(state)
        while engine.should_retry(httpx.ConnectError("x"), state).retry:
            engine.begin_attempt(state)
        assert state.attempt == state.max_attempts

    def test_non_retryable_status(self, engine):
        state = engine.new_state()
        engine.begin_attempt(state)
        assert engine.should_retry(404, state).retry is False

    def test_accepts_response(self, engine):
        state = engine.new_state()
        engine.begin_attempt(state)
        response = httpx.Response(502)
        assert engine.should_retry(response, state).retry is True

    def test_non_retryable_error(self, engine):
        state = engine.new_state()
        engine.begin_attempt(state)
        assert engine.should_retry(ValueError("x"), state).retry is False

    def test_single_attempt_config_never_retries(self):
        engine = RetryEngine(RetryConfig(max_attempts=1))
        state = engine.new_state()
        engine.begin_attempt(state)
        assert engine.should_retry(503, state).retry is False

    def test_emits_wait_and_exhausted_events(self, engine):
        events = []
        engine.on(events.append)
        state = engine.new_state()
        for _ in range(3):
            engine.begin_attempt(state)
            engine.should_retry(500, state, key="req-1")

        assert [e.type for e in events] == [
            TransportEventType.RETRY_WAIT,
            TransportEventType.RETRY_WAIT,
            TransportEventType.RETRY_EXHAUSTED,
        ]
        assert events[0].key == "req-1"
        assert events[1].metadata["delay_seconds"] == 0.2

    @pytest.mark.asyncio
    async def test_wait_uses_injected_sleep(self):
        sleep = RecordingSleep()
        engine = RetryEngine(RetryConfig(base_delay_seconds=0.25), sleep=sleep)
        state = engine.new_state()
        engine.begin_attempt(state)
        await engine.wait(engine.should_retry(503, state))
        assert sleep.delays == [0.25]

    @pytest.mark.asyncio
    async def test_wait_skips_zero_delay(self):
        sleep = RecordingSleep()
        engine = RetryEngine(RetryConfig(base_delay_seconds=0), sleep=sleep)
        state = engine.new_state()
        engine.begin_attempt(state)
        await engine.wait(engine.should_retry(503, state))
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_default_sleep_is_asyncio(self, monkeypatch):
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        engine = RetryEngine(RetryConfig(base_delay_seconds=0.5))
        state = engine.new_state()
        engine.begin_attempt(state)
        await engine.wait(engine.should_retry(503, state))
        assert slept == [0.5]


class TestCreateRetryEngine:
    """Tests for create_retry_engine."""

    @pytest.mark.asyncio
    async def test_passes_config_and_sleep(self):
        sleep = RecordingSleep()
        engine = create_retry_engine(RetryConfig(max_attempts=2, base_delay_seconds=0.3), sleep)
        state = engine.new_state()
        engine.begin_attempt(state)
        await engine.wait(engine.should_retry(500, state))

        assert state.max_attempts == 2
        assert sleep.delays == [0.3]

    def test_defaults(self):
        assert create_retry_engine().config.max_attempts == 3
