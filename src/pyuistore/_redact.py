"""Request summaries for debug logs.

Dataset requests carry a bearer token in their headers and opaque blobs in
their bodies; neither belongs in a log line.
"""

from __future__ import annotations

from collections.abc import Mapping

_SECRET_HEADERS = frozenset({"authorization", "cookie", "proxy-authorization", "x-api-key"})


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of *headers* with credential values masked."""
    return {name: "<redacted>" if name.lower() in _SECRET_HEADERS else value for name, value in headers.items()}


def describe_body(data: bytes | None) -> str:
    if data is None:
        return "<empty>"
    return f"<bytes:{len(data)}b>"
