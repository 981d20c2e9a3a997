"""
Pipeline stages for the transport façade.

outbound headers -> (dedup) -> send -> classify -> recover

Classification order is the dispatch priority: 401 is checked before 429,
429 before backoff-retryable statuses, and anything left over is terminal.
"""
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urljoin, urlparse

from .events import mask_token
from .retry.policy import is_retryable_error, is_retryable_status
from .types import RequestDescriptor

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
CLIENT_TIMESTAMP_HEADER = "X-Client-Timestamp"
AUTHORIZATION_HEADER = "Authorization"

CLIENT_ERROR_STATUSES = frozenset({400, 403, 404, 409, 422})


class Outcome(str, Enum):
    """Classification of one attempt."""

    SUCCESS = "success"
    AUTH_EXPIRED = "auth_expired"
    THROTTLED = "throttled"
    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    UNCLASSIFIED = "unclassified"


def classify_response(status: int, retryable_statuses: Iterable[int]) -> Outcome:
    """Classify a received response by status code."""
    if status < 400:
        return Outcome.SUCCESS
    if status == 401:
        return Outcome.AUTH_EXPIRED
    if status == 429:
        return Outcome.THROTTLED
    if is_retryable_status(status, retryable_statuses):
        return Outcome.TRANSIENT
    if status in CLIENT_ERROR_STATUSES:
        return Outcome.CLIENT_ERROR
    return Outcome.UNCLASSIFIED


def classify_error(error: BaseException) -> Outcome:
    """Classify a failure where no response was received."""
    return Outcome.TRANSIENT if is_retryable_error(error) else Outcome.UNCLASSIFIED


def build_url(base_url: str, path: str) -> str:
    """Build full URL from base and path."""
    if path.startswith(("http://", "https://")):
        return path
    if path.startswith("/"):
        parsed = urlparse(base_url)
        base_path = parsed.path.rstrip("/")
        return f"{parsed.scheme}://{parsed.netloc}{base_path}{path}"
    if path:
        if not base_url.endswith("/"):
            base_url = base_url + "/"
        return urljoin(base_url, path)
    return base_url


def normalize_params(
    params: Union[Mapping[str, Any], List[Tuple[str, Any]], None],
) -> List[Tuple[str, str]]:
    """Flatten a params mapping or pair list, keeping caller order."""
    if not params:
        return []
    items = params.items() if isinstance(params, Mapping) else params
    result: List[Tuple[str, str]] = []
    for key, value in items:
        if value is None:
            continue
        values = value if isinstance(value, (list, tuple)) else [value]
        for v in values:
            if isinstance(v, bool):
                v = "true" if v else "false"
            result.append((str(key), str(v)))
    return result


def is_auth_refresh_excluded(descriptor: RequestDescriptor, excluded_paths: Iterable[str]) -> bool:
    """Requests that must surface 401 directly instead of refreshing credentials."""
    if descriptor.skip_auth_refresh:
        return True
    path = urlparse(descriptor.url).path.rstrip("/")
    return any(path.endswith(p.rstrip("/")) for p in excluded_paths if p)


def build_outbound_headers(
    descriptor: RequestDescriptor,
    access_token: Optional[str],
    clock: Callable[[], float] = time.time,
) -> Dict[str, str]:
    """
    Headers for one attempt.

    The request id is stable across retries of a logical request; the client
    timestamp is taken fresh for every attempt. Any caller-supplied
    Authorization header is replaced by the bearer token when one is known.
    """
    headers = {
        k: v
        for k, v in descriptor.headers.items()
        if k.lower() not in (REQUEST_ID_HEADER.lower(), CLIENT_TIMESTAMP_HEADER.lower())
    }
    headers[REQUEST_ID_HEADER] = descriptor.request_id
    headers[CLIENT_TIMESTAMP_HEADER] = str(int(clock() * 1000))

    token = descriptor.bearer_token or access_token
    if token:
        headers = {k: v for k, v in headers.items() if k.lower() != AUTHORIZATION_HEADER.lower()}
        headers[AUTHORIZATION_HEADER] = f"Bearer {token}"
        logger.debug(
            f"build_outbound_headers: {descriptor.request_id} "
            f"kind={descriptor.attempt_kind.value} token={mask_token(token)}"
        )
    else:
        logger.debug(f"build_outbound_headers: {descriptor.request_id} has no access token")
    return headers
