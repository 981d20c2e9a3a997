"""
Request fingerprinting for the dedup cache.
"""
import hashlib
import json
from typing import Any, List, Tuple
from urllib.parse import urlencode

import httpx

from .types import RequestDescriptor


def _stringify(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return ""
    return str(value)


def canonical_body(descriptor: RequestDescriptor) -> bytes:
    """Serialized body; JSON is dumped with sorted keys and no whitespace."""
    if descriptor.content is not None:
        return descriptor.content
    if descriptor.json is not None:
        return json.dumps(
            descriptor.json,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        ).encode()
    return b""


def canonical_query(descriptor: RequestDescriptor) -> List[Tuple[str, str]]:
    """Query pairs from the URL and ``params``, merged and sorted."""
    pairs = list(httpx.URL(descriptor.url).params.multi_items())
    pairs.extend((str(k), _stringify(v)) for k, v in descriptor.params)
    return sorted(pairs)


def canonical_request(descriptor: RequestDescriptor) -> str:
    """
    Canonical text form of a request.

    ``?b=2&a=1`` and ``?a=1&b=2`` produce the same form, and so do the same
    parameters given inline in the URL or through ``params``.
    """
    base_url = descriptor.url.split("#", 1)[0].split("?", 1)[0]
    return "\n".join(
        [
            descriptor.method.upper(),
            base_url,
            urlencode(canonical_query(descriptor)),
            canonical_body(descriptor).decode("utf-8", errors="replace"),
        ]
    )


def generate_fingerprint(descriptor: RequestDescriptor) -> str:
    """Generate a SHA-256 fingerprint for a request."""
    base_url = descriptor.url.split("#", 1)[0].split("?", 1)[0]
    hasher = hashlib.sha256()
    hasher.update(descriptor.method.upper().encode())
    hasher.update(b"\x00")
    hasher.update(base_url.encode())
    hasher.update(b"\x00")
    hasher.update(urlencode(canonical_query(descriptor)).encode())
    hasher.update(b"\x00")
    hasher.update(canonical_body(descriptor))
    return hasher.hexdigest()
