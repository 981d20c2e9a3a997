"""
Token refresh endpoint client.
"""
import logging
import uuid
from typing import Any, Dict, Optional, Protocol

import httpx

from ..errors import HTTP_ERROR, ApiError, error_from_response
from ..events import mask_token
from ..types import TokenPair

logger = logging.getLogger(__name__)


class TokenRefresher(Protocol):
    """Exchanges a refresh token for a new token pair."""

    async def __call__(self, refresh_token: str) -> TokenPair:
        ...


def parse_token_pair(payload: Any, previous_refresh_token: str) -> TokenPair:
    """
    Read a token pair from a refresh response body.

    Accepts the ``{"success": ..., "data": {...}}`` envelope or a flat object.
    A response without a new refresh token keeps the previous one.
    """
    data: Dict[str, Any] = payload if isinstance(payload, dict) else {}
    if isinstance(data.get("data"), dict):
        data = data["data"]

    access_token = data.get("token") or data.get("accessToken") or data.get("access_token")
    if not access_token:
        raise ApiError(HTTP_ERROR, "Refresh response did not contain an access token.")

    refresh_token = (
        data.get("refreshToken") or data.get("refresh_token") or previous_refresh_token
    )
    expires_in = data.get("expiresIn", data.get("expires_in"))
    return TokenPair(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=int(expires_in) if expires_in is not None else None,
        token_type=data.get("tokenType") or data.get("token_type") or "Bearer",
    )


class HttpTokenRefresher:
    """POSTs ``{"refreshToken": ...}`` to the refresh endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._client = client
        self._url = url
        self._timeout_seconds = timeout_seconds

    async def __call__(self, refresh_token: str) -> TokenPair:
        request_id = str(uuid.uuid4())
        logger.debug(
            f"HttpTokenRefresher: POST {self._url} refresh_token={mask_token(refresh_token)}"
        )
        response = await self._client.post(
            self._url,
            json={"refreshToken": refresh_token},
            headers={"X-Request-ID": request_id},
            timeout=self._timeout_seconds if self._timeout_seconds is not None else httpx.USE_CLIENT_DEFAULT,
        )
        if not response.is_success:
            raise error_from_response(response, request_id)
        try:
            payload = response.json()
        except ValueError:
            raise ApiError(
                HTTP_ERROR,
                "Refresh response was not valid JSON.",
                http_status=response.status_code,
                request_id=request_id,
            )
        return parse_token_pair(payload, refresh_token)
