"""
Single-flight access-token refresh.

However many requests hit 401 at once, one refresh call is made. Every
caller of ``refresh()`` while it is running awaits the same future, so all of
them see the same new token pair or the same SessionExpiredError. A 401 that
arrives after the refresh settled, for a request sent with the replaced
token, gets the stored token or the same error without another call.
"""
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from ..errors import UNAUTHORIZED, ApiError, SessionExpiredError
from ..events import EventEmitter, mask_token
from ..types import RefreshState, TokenPair, TransportEventType
from .credentials import CredentialStore
from .refresher import TokenRefresher

logger = logging.getLogger(__name__)

SessionExpiredHandler = Callable[[SessionExpiredError], Union[None, Awaitable[None]]]
"""Called once per failed refresh; owns any user-facing redirect/notification."""


class RefreshCoordinator(EventEmitter):
    """
    RefreshCoordinator - one outstanding refresh call at a time.

    States:
        IDLE: no refresh in flight; the next ``refresh()`` starts one
        REFRESHING: ``refresh()`` callers attach to the in-flight call

    The in-flight future is cleared by a done-callback that runs before any
    waiter resumes, so replays always observe the IDLE state.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        refresher: TokenRefresher,
        on_session_expired: Optional[SessionExpiredHandler] = None,
    ) -> None:
        super().__init__()
        self._credentials = credentials
        self._refresher = refresher
        self._on_session_expired = on_session_expired
        self._in_flight: Optional["asyncio.Future[TokenPair]"] = None
        self._waiters = 0
        self._refresh_calls = 0
        self._last_failure: Optional[SessionExpiredError] = None
        self._failed_token: Optional[str] = None

    @property
    def state(self) -> RefreshState:
        return RefreshState.REFRESHING if self._in_flight is not None else RefreshState.IDLE

    @property
    def waiters(self) -> int:
        """Callers attached to the current (or last) refresh."""
        return self._waiters

    @property
    def refresh_calls(self) -> int:
        """Number of refresh calls started so far."""
        return self._refresh_calls

    async def refresh(
        self,
        request_id: Optional[str] = None,
        sent_token: Optional[str] = None,
    ) -> TokenPair:
        """
        Get a fresh token pair, starting a refresh only if none is in flight.

        Args:
            request_id: Request that received the 401, used in logs and events
            sent_token: Access token the rejected request carried. A 401 for a
                token that was already replaced does not start another refresh:
                the stored pair is returned, or the earlier SessionExpiredError
                is raised again if refreshing that token failed.

        Raises:
            SessionExpiredError: the refresh failed; credentials were cleared
        """
        if self._in_flight is None and sent_token is not None:
            current = self._credentials.get_access_token()
            if current and current != sent_token:
                logger.debug(
                    f"RefreshCoordinator.refresh: request {request_id} carried a replaced "
                    f"token, using stored token {mask_token(current)}"
                )
                return TokenPair(
                    access_token=current,
                    refresh_token=self._credentials.get_refresh_token() or "",
                )
            if self._last_failure is not None and sent_token == self._failed_token:
                logger.debug(
                    f"RefreshCoordinator.refresh: request {request_id} carried a token "
                    f"whose refresh already failed"
                )
                raise self._last_failure

        if self._in_flight is None:
            self._waiters = 0
            self._refresh_calls += 1
            self._in_flight = asyncio.ensure_future(self._run(request_id, sent_token))
            self._in_flight.add_done_callback(self._settled)
        else:
            logger.debug(
                f"RefreshCoordinator.refresh: request {request_id} waiting on in-flight refresh"
            )
        self._waiters += 1
        return await asyncio.shield(self._in_flight)

    def _settled(self, future: asyncio.Future) -> None:
        if self._in_flight is future:
            self._in_flight = None
        if not future.cancelled():
            future.exception()

    async def _run(self, request_id: Optional[str], sent_token: Optional[str]) -> TokenPair:
        refresh_token = self._credentials.get_refresh_token()
        logger.info(
            f"RefreshCoordinator._run: refreshing access token "
            f"(refresh_token={mask_token(refresh_token)}, trigger={request_id})"
        )
        self._emit(TransportEventType.REFRESH_START, request_id or "")

        try:
            if not refresh_token:
                raise ApiError(UNAUTHORIZED, "No refresh token available.", http_status=401)
            tokens = await self._refresher(refresh_token)
        except Exception as exc:
            error = SessionExpiredError(
                request_id=request_id,
                details={"cause": str(exc), "type": type(exc).__name__},
            )
            logger.warning(
                f"RefreshCoordinator._run: refresh failed ({type(exc).__name__}: {exc}), "
                f"clearing credentials for {self._waiters} waiter(s)"
            )
            self._last_failure = error
            self._failed_token = sent_token
            self._credentials.clear()
            self._emit(
                TransportEventType.REFRESH_FAILURE,
                request_id or "",
                {"error": str(exc), "waiters": self._waiters},
            )
            await self._notify_session_expired(error)
            raise error from exc

        self._credentials.set_tokens(tokens.access_token, tokens.refresh_token)
        self._last_failure = None
        self._failed_token = None
        logger.info(
            f"RefreshCoordinator._run: refreshed access token "
            f"(access_token={mask_token(tokens.access_token)}, waiters={self._waiters})"
        )
        self._emit(
            TransportEventType.REFRESH_SUCCESS,
            request_id or "",
            {"waiters": self._waiters},
        )
        return tokens

    async def _notify_session_expired(self, error: SessionExpiredError) -> None:
        if self._on_session_expired is None:
            return
        try:
            result = self._on_session_expired(error)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("RefreshCoordinator: session-expired handler failed")
