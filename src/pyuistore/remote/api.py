"""Remote dataset API client.

One store operation maps to exactly one HTTP call:

* ``get``  -> ``GET  /api/repos/{repo}/workspaces/{scope}/datasets/{path}``
* ``set``  -> ``PUT  /api/repos/{repo}/workspaces/{scope}/datasets/{path}``
* ``list`` -> ``GET  /api/repos/{repo}/workspaces/{scope}/datasets[/{path}]?list=1``

Dataset values travel as ``application/octet-stream``; listings as a JSON
array of field names.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

import aiohttp
from pydantic import TypeAdapter, ValidationError

from pyuistore._constants import OCTET_STREAM
from pyuistore.config import RemoteCacheConfig
from pyuistore.exceptions import RemoteApiError, UiStoreError
from pyuistore.remote._transport import HttpTransport, Transport, decode_json
from pyuistore.remote.paths import DatasetPath

_logger = logging.getLogger(__name__)

_FIELD_NAMES = TypeAdapter(list[str])


class DatasetSource(ABC):
    """Where a :class:`~pyuistore.remote.cache.RemoteCache` gets its data."""

    @abstractmethod
    async def get(self, scope: str, path: DatasetPath) -> bytes: ...

    @abstractmethod
    async def set(self, scope: str, path: DatasetPath, value: bytes) -> None: ...

    @abstractmethod
    async def list(self, scope: str, path: DatasetPath = ()) -> list[str]: ...


def dataset_endpoint(repo: str, scope: str, path: DatasetPath) -> str:
    endpoint = f"/api/repos/{quote(repo, safe='')}/workspaces/{quote(scope, safe='')}/datasets"
    if path:
        endpoint += "/" + "/".join(quote(segment.value, safe="") for segment in path)
    return endpoint


class DatasetApi(DatasetSource):
    """Async client for the dataset API.

    Usage::

        async with DatasetApi(RemoteCacheConfig(api_url="http://localhost:8000")) as api:
            blob = await api.get("main", make_path("inputs", "sales"))
    """

    def __init__(
        self,
        config: RemoteCacheConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        if transport is None and session is not None:
            self._transport = HttpTransport(config, session)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DatasetApi:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    @property
    def config(self) -> RemoteCacheConfig:
        return self._config

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise UiStoreError("DatasetApi not initialized. Use 'async with DatasetApi(...) as api:'")
        return self._transport

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get(self, scope: str, path: DatasetPath) -> bytes:
        endpoint = dataset_endpoint(self._config.repo, scope, path)
        return await self._require_transport().request("GET", endpoint, token=self._config.token)

    async def set(self, scope: str, path: DatasetPath, value: bytes) -> None:
        if not path:
            raise ValueError("cannot set a dataset at the workspace root")
        endpoint = dataset_endpoint(self._config.repo, scope, path)
        await self._require_transport().request(
            "PUT",
            endpoint,
            data=bytes(value),
            content_type=OCTET_STREAM,
            token=self._config.token,
        )
        _logger.debug("Set %s (%d bytes)", endpoint, len(value))

    async def list(self, scope: str, path: DatasetPath = ()) -> list[str]:
        endpoint = dataset_endpoint(self._config.repo, scope, path)
        body = await self._require_transport().request(
            "GET",
            endpoint,
            params={"list": "1"},
            token=self._config.token,
        )
        try:
            return _FIELD_NAMES.validate_python(decode_json(body, endpoint=endpoint))
        except ValidationError as exc:
            raise RemoteApiError(
                f"{endpoint} listing is not an array of field names",
                code="invalid_listing",
                endpoint=endpoint,
            ) from exc
