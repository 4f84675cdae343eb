"""HTTP transport for the remote dataset API."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pyuistore._constants import USER_AGENT
from pyuistore._redact import describe_body, redact_headers
from pyuistore.config import RemoteCacheConfig
from pyuistore.exceptions import (
    DatasetNotFoundError,
    RemoteApiError,
    RemoteAuthenticationError,
    RemoteTransportError,
)

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by :class:`~pyuistore.remote.api.DatasetApi`.

    Having a protocol here makes it easy to pass test doubles while keeping the
    production implementation (:class:`HttpTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, str] | None = None,
        data: bytes | None = None,
        content_type: str | None = None,
        token: str | None = None,
    ) -> bytes: ...


def _error_details(text: str) -> tuple[str, str]:
    """Pull ``(code, message)`` from an error body, JSON or not."""
    try:
        body = json.loads(text)
    except json.JSONDecodeError:
        return "", text[:200]
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict):
            return str(error.get("code", error.get("type", ""))), str(error.get("message", ""))[:200]
        return "", str(error)[:200]
    return "", text[:200]


class HttpTransport:
    """aiohttp transport sending a bearer token with each request."""

    def __init__(self, config: RemoteCacheConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, str] | None = None,
        data: bytes | None = None,
        content_type: str | None = None,
        token: str | None = None,
    ) -> bytes:
        headers: dict[str, str] = {"user-agent": USER_AGENT}
        if token:
            headers["authorization"] = f"Bearer {token}"
        if content_type:
            headers["content-type"] = content_type

        url = f"{self._config.api_url.rstrip('/')}{endpoint}"
        _logger.debug("%s %s headers=%s body=%s", method, url, redact_headers(headers), describe_body(data))

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params) if params else None,
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                body = await resp.read()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise RemoteTransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc
        except asyncio.TimeoutError as exc:
            raise RemoteTransportError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc

        if 200 <= status < 300:
            return body

        text = body.decode("utf-8", errors="replace")
        code, message = _error_details(text)
        error_cls: type[RemoteApiError] = RemoteApiError
        if status in (401, 403):
            error_cls = RemoteAuthenticationError
        elif status == 404:
            error_cls = DatasetNotFoundError
        raise error_cls(
            f"HTTP {status} from {endpoint}: {message}",
            code=code,
            status_code=status,
            endpoint=endpoint,
        )


def decode_json(body: bytes, *, endpoint: str) -> Any:
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RemoteTransportError(f"Invalid JSON from {endpoint}: {body[:200]!r}", endpoint=endpoint) from exc
