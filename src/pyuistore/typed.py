"""Typed access to blob stores.

The stores hold opaque bytes. This module encodes and decodes typed values as
JSON through pydantic ``TypeAdapter``s and wraps a store handle with typed
``read``/``write`` helpers that also feed :mod:`pyuistore.tracking`.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import deque
from typing import Any, TypeVar

from pydantic import TypeAdapter

from pyuistore.exceptions import DatasetNotLoadedError, KeyNotFoundError
from pyuistore.remote.cache import RemoteCache
from pyuistore.remote.paths import DatasetPath, cache_key
from pyuistore.store.interface import StoreInterface
from pyuistore.tracking import track_key

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@functools.lru_cache(maxsize=256)
def _adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def encode_value(type_: type[T] | Any, value: T) -> bytes:
    """Serialize *value* as JSON bytes according to *type_*."""
    return _adapter(type_).dump_json(value)


def decode_value(type_: type[T] | Any, blob: bytes) -> T:
    """Validate JSON *blob* into *type_*."""
    return _adapter(type_).validate_json(blob)


class StateAccessor:
    """Typed view over a :class:`~pyuistore.store.interface.StoreInterface`.

    Usage::

        state = StateAccessor(store)
        state.write("count", int, 1)
        state.read("count", int)   # 1, and "count" is now tracked/active
    """

    def __init__(self, store: StoreInterface) -> None:
        self._store = store

    @property
    def store(self) -> StoreInterface:
        return self._store

    def read(self, key: str, type_: type[T] | Any) -> T:
        """Decode *key*; raises :class:`KeyNotFoundError` if it is absent."""
        track_key(key)
        blob = self._store.read(key)
        if blob is None:
            raise KeyNotFoundError(key)
        return decode_value(type_, blob)

    def get(self, key: str, type_: type[T] | Any, default: T | None = None) -> T | None:
        track_key(key)
        blob = self._store.read(key)
        if blob is None:
            return default
        return decode_value(type_, blob)

    def write(self, key: str, type_: type[T] | Any, value: T) -> None:
        self._store.write(key, encode_value(type_, value))

    def delete(self, key: str) -> None:
        self._store.write(key, None)

    def has(self, key: str) -> bool:
        return self._store.has(key)


class DatasetAccessor:
    """Typed view over a :class:`~pyuistore.remote.cache.RemoteCache`.

    ``get`` and ``list_fields`` read from the cache only and raise
    :class:`DatasetNotLoadedError` if nothing was preloaded. ``set`` returns
    immediately; writes are sent one at a time in call order and failures are
    logged (the cache has already rolled them back).
    """

    def __init__(self, cache: RemoteCache) -> None:
        self._cache = cache
        self._writes: deque[tuple[str, tuple[Any, ...], bytes]] = deque()
        self._worker: asyncio.Task[None] | None = None

    @property
    def cache(self) -> RemoteCache:
        return self._cache

    def get(self, scope: str, path: DatasetPath, type_: type[T] | Any) -> T:
        key = cache_key(scope, path)
        track_key(key)
        blob = self._cache.read(scope, path)
        if blob is None:
            raise DatasetNotLoadedError(key)
        return decode_value(type_, blob)

    def has(self, scope: str, path: DatasetPath) -> bool:
        return self._cache.has(scope, path)

    def list_fields(self, scope: str, path: DatasetPath = ()) -> list[str]:
        names = self._cache.cached_fields(scope, path)
        if names is None:
            raise DatasetNotLoadedError(cache_key(scope, path), what="Dataset list")
        return names

    async def preload_fields(self, scope: str, path: DatasetPath = ()) -> list[str]:
        return await self._cache.list_fields(scope, path)

    def subscribe(self, scope: str, path: DatasetPath, interval: float) -> None:
        """Poll *path* every *interval* seconds."""
        self._cache.set_refetch_interval(scope, path, interval)

    def set(self, scope: str, path: DatasetPath, type_: type[T] | Any, value: T) -> None:
        """Queue a remote write of *value*. Must be called with a running loop."""
        self._writes.append((scope, tuple(path), encode_value(type_, value)))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain_writes())

    async def _drain_writes(self) -> None:
        while self._writes:
            scope, path, blob = self._writes.popleft()
            try:
                await self._cache.write(scope, path, blob)
            except Exception:
                _logger.warning("Dataset write to %s failed", cache_key(scope, path), exc_info=True)

    async def wait_for_writes(self) -> None:
        """Wait until every queued write has been attempted."""
        while self._worker is not None and not self._worker.done():
            await self._worker
