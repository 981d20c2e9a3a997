"""
Transport façade: the single entry point for outgoing API calls.
"""
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

import httpx

from .config import TransportConfig, TransportSettings, get_settings
from .dedup import DedupCache, PendingRequestStore
from .errors import error_from_exception, error_from_response
from .pipeline import (
    Outcome,
    build_outbound_headers,
    build_url,
    classify_error,
    classify_response,
    is_auth_refresh_excluded,
    normalize_params,
)
from .rate_limit import RateLimitHandler
from .refresh import (
    CredentialStore,
    HttpTokenRefresher,
    MemoryCredentialStore,
    RefreshCoordinator,
    SessionExpiredHandler,
    TokenRefresher,
)
from .retry import RetryEngine
from .types import AttemptKind, RequestDescriptor, RetryState

logger = logging.getLogger(__name__)

Params = Union[Mapping[str, Any], List[Tuple[str, Any]], None]

COUNTED_ATTEMPTS = (AttemptKind.ORIGINAL, AttemptKind.BACKOFF_RETRY)


class ResilientClient:
    """
    Asynchronous API client with de-duplication, retry, token refresh and
    rate-limit handling.

    Example:
        async with ResilientClient(config, credentials) as client:
            response = await client.get(
                "/customers/search", params={"term": "ali"}, dedupe=True
            )
            customers = extract_response_data(response)

    Recoverable failures (401 with a working refresh token, 429, network
    errors and retryable statuses within the retry budget) never reach the
    caller; terminal failures raise ApiError.
    """

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        credentials: Optional[CredentialStore] = None,
        *,
        httpx_client: Optional[httpx.AsyncClient] = None,
        token_refresher: Optional[TokenRefresher] = None,
        session_expired_handler: Optional[SessionExpiredHandler] = None,
        dedup_store: Optional[PendingRequestStore] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or TransportConfig()
        self._credentials = credentials or MemoryCredentialStore()
        self._owns_client = httpx_client is None
        self._client = httpx_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_seconds),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        self._wall_clock = wall_clock

        self.dedup = DedupCache(self._config.dedup, dedup_store, clock)
        self.retry = RetryEngine(self._config.retry, sleep)
        self.rate_limit = RateLimitHandler(self._config.rate_limit, sleep)
        refresher = token_refresher or HttpTokenRefresher(
            self._client,
            build_url(self._config.base_url, self._config.refresh_path),
            self._config.timeout_seconds,
        )
        self.refresh = RefreshCoordinator(
            self._credentials, refresher, session_expired_handler
        )
        self._closed = False
        logger.debug(f"ResilientClient: base_url={self._config.base_url}")

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    async def request(
        self,
        method: str,
        path: str = "/",
        *,
        params: Params = None,
        json: Any = None,
        content: Union[str, bytes, None] = None,
        headers: Optional[Dict[str, str]] = None,
        dedupe: bool = False,
        skip_auth_refresh: bool = False,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """
        Make a request through the resilience pipeline.

        Args:
            method: HTTP method
            path: Path relative to the base URL, or an absolute URL
            params: Query parameters (mapping or ordered pairs)
            json: JSON body
            content: Raw body
            headers: Extra headers
            dedupe: Share an identical in-flight GET instead of sending another
            skip_auth_refresh: Surface 401 directly instead of refreshing the token
            timeout: Per-attempt timeout in seconds (default from config)

        Raises:
            ApiError: terminal failure, normalized
            SessionExpiredError: the token refresh failed
        """
        if self._closed:
            raise RuntimeError("Client has been closed")

        descriptor = RequestDescriptor(
            method=method.upper(),
            url=build_url(self._config.base_url, path),
            request_id=str(uuid.uuid4()),
            params=normalize_params(params),
            json=json,
            content=content.encode() if isinstance(content, str) else content,
            headers=dict(headers or {}),
            dedupe=dedupe,
            skip_auth_refresh=skip_auth_refresh,
            timeout_seconds=timeout if timeout is not None else self._config.timeout_seconds,
        )

        if self.dedup.supports(descriptor):
            return await self.dedup.do(descriptor, lambda: self._execute(descriptor))
        return await self._execute(descriptor)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    async def _execute(self, descriptor: RequestDescriptor) -> httpx.Response:
        """Send a logical request, recovering until success or a terminal outcome."""
        state = self.retry.new_state()
        throttled = 0
        current = descriptor

        while True:
            if current.attempt_kind in COUNTED_ATTEMPTS:
                self.retry.begin_attempt(state)

            access_token = current.bearer_token or self._credentials.get_access_token()
            try:
                response = await self._send(current, access_token)
            except Exception as exc:
                throttled = 0
                if classify_error(exc) is Outcome.TRANSIENT and await self._backoff(exc, state, current):
                    current = current.for_backoff_retry()
                    continue
                logger.warning(
                    f"ResilientClient._execute: {current.method} {current.url} "
                    f"failed without response ({type(exc).__name__}: {exc})"
                )
                raise error_from_exception(exc, current.request_id) from exc

            outcome = classify_response(response.status_code, state.retryable_statuses)
            logger.debug(
                f"ResilientClient._execute: {current.request_id} {current.method} {current.url} "
                f"-> {response.status_code} ({outcome.value})"
            )

            if outcome is Outcome.SUCCESS:
                return response

            if outcome is not Outcome.THROTTLED:
                throttled = 0

            if outcome is Outcome.AUTH_EXPIRED and self._may_refresh(current):
                tokens = await self.refresh.refresh(current.request_id, access_token)
                current = current.for_refreshed_retry(tokens.access_token)
                continue

            if outcome is Outcome.THROTTLED:
                throttled += 1
                if self.rate_limit.can_retry(throttled):
                    await self.rate_limit.wait(response, current.request_id)
                    current = current.for_throttled_retry()
                    continue

            if outcome is Outcome.TRANSIENT and await self._backoff(response, state, current):
                current = current.for_backoff_retry()
                continue

            raise error_from_response(response, current.request_id)

    async def _send(
        self, descriptor: RequestDescriptor, access_token: Optional[str]
    ) -> httpx.Response:
        headers = build_outbound_headers(descriptor, access_token, self._wall_clock)
        request = self._client.build_request(
            descriptor.method,
            descriptor.url,
            params=descriptor.params or None,
            json=descriptor.json,
            content=descriptor.content,
            headers=headers,
            timeout=descriptor.timeout_seconds,
        )
        return await self._client.send(request)

    async def _backoff(
        self,
        failure: Union[Exception, httpx.Response],
        state: RetryState,
        descriptor: RequestDescriptor,
    ) -> bool:
        decision = self.retry.should_retry(failure, state, descriptor.request_id)
        if decision.retry:
            await self.retry.wait(decision)
        return decision.retry

    def _may_refresh(self, descriptor: RequestDescriptor) -> bool:
        if descriptor.auth_refreshed:
            return False
        return not is_auth_refresh_excluded(descriptor, self._config.auth_excluded_paths)

    async def aclose(self) -> None:
        """Close the client."""
        if self._closed:
            return
        self._closed = True
        self.dedup.close()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ResilientClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


def extract_response_data(response: httpx.Response) -> Any:
    """Decoded JSON body of a response, or its text when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return response.text


def create_resilient_client(
    settings: Optional[TransportSettings] = None,
    credentials: Optional[CredentialStore] = None,
    **kwargs: Any,
) -> ResilientClient:
    """
    Create a client from environment settings.

    Args:
        settings: Settings to use (default: read once from the environment)
        credentials: Credential store (default: in-memory)
        **kwargs: Forwarded to ResilientClient

    Returns:
        Configured ResilientClient
    """
    settings = settings or get_settings()
    return ResilientClient(settings.to_config(), credentials, **kwargs)
