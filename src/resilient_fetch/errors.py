"""
Normalized errors surfaced to callers on terminal failure.
"""
from typing import Any, Dict, Optional

import httpx


NETWORK_ERROR = "NETWORK_ERROR"
TIMEOUT = "TIMEOUT"
SERVER_ERROR = "SERVER_ERROR"
UNAUTHORIZED = "UNAUTHORIZED"
SESSION_EXPIRED = "SESSION_EXPIRED"
RATE_LIMITED = "RATE_LIMITED"
BAD_REQUEST = "BAD_REQUEST"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
CONFLICT = "CONFLICT"
VALIDATION_ERROR = "VALIDATION_ERROR"
HTTP_ERROR = "HTTP_ERROR"

STATUS_CODES: Dict[int, str] = {
    400: BAD_REQUEST,
    401: UNAUTHORIZED,
    403: FORBIDDEN,
    404: NOT_FOUND,
    409: CONFLICT,
    422: VALIDATION_ERROR,
    429: RATE_LIMITED,
}

DEFAULT_MESSAGES: Dict[str, str] = {
    NETWORK_ERROR: "Network error. Please check your connection.",
    TIMEOUT: "The request timed out. Please try again.",
    SERVER_ERROR: "Server error. Please try again later.",
    UNAUTHORIZED: "You are not authorized to perform this action.",
    SESSION_EXPIRED: "Session expired. Please login again.",
    RATE_LIMITED: "Too many requests. Please try again later.",
    BAD_REQUEST: "Bad request. Please check your input.",
    FORBIDDEN: "You do not have permission to perform this action.",
    NOT_FOUND: "Resource not found.",
    CONFLICT: "A conflict occurred. This resource may already exist.",
    VALIDATION_ERROR: "Validation failed. Please check your input.",
    HTTP_ERROR: "An unexpected error occurred.",
}


class ResilientFetchError(Exception):
    """Base error for resilient_fetch."""


class ApiError(ResilientFetchError):
    """
    Terminal failure of a logical request.

    ``to_dict()`` gives the normalized ``{code, message, httpStatus, requestId}``
    structure; ``details`` keeps whatever payload the server sent.
    """

    def __init__(
        self,
        code: str,
        message: Optional[str] = None,
        *,
        http_status: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Any = None,
    ) -> None:
        self.code = code
        self.message = message or DEFAULT_MESSAGES.get(code, DEFAULT_MESSAGES[HTTP_ERROR])
        self.http_status = http_status
        self.request_id = request_id
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "httpStatus": self.http_status,
            "requestId": self.request_id,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, "
            f"http_status={self.http_status!r}, request_id={self.request_id!r})"
        )


class SessionExpiredError(ApiError):
    """Raised to every waiter when the token refresh fails."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        http_status: Optional[int] = 401,
        request_id: Optional[str] = None,
        details: Any = None,
    ) -> None:
        super().__init__(
            SESSION_EXPIRED,
            message,
            http_status=http_status,
            request_id=request_id,
            details=details,
        )


def code_for_status(status: int) -> str:
    """Map an HTTP status to a normalized error code."""
    if status in STATUS_CODES:
        return STATUS_CODES[status]
    if status == 408:
        return TIMEOUT
    if status >= 500:
        return SERVER_ERROR
    return HTTP_ERROR


def _response_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def error_from_response(response: httpx.Response, request_id: Optional[str]) -> ApiError:
    """Build a normalized error from a terminal HTTP response."""
    payload = _response_payload(response)
    message = None
    if isinstance(payload, dict):
        server_message = payload.get("message")
        if isinstance(server_message, str) and server_message:
            message = server_message
    return ApiError(
        code_for_status(response.status_code),
        message,
        http_status=response.status_code,
        request_id=request_id,
        details=payload,
    )


def error_from_exception(error: Exception, request_id: Optional[str]) -> ApiError:
    """Build a normalized error from a transport failure (no response received)."""
    code = TIMEOUT if isinstance(error, (httpx.TimeoutException, TimeoutError)) else NETWORK_ERROR
    return ApiError(
        code,
        http_status=None,
        request_id=request_id,
        details={"error": str(error), "type": type(error).__name__},
    )
