"""Reactive cache over a remote dataset source.

Mirrors the subscription contract of :class:`~pyuistore.store.memory.UiStore`
(``subscribe``/``get_snapshot``/``get_key_version``/``batch``/
``set_scheduler``) with its own independent bookkeeping. Reads are served from
the local cache only; network I/O happens in :meth:`RemoteCache.preload`,
:meth:`RemoteCache.write`, :meth:`RemoteCache.list_fields` and poll observers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from pyuistore.config import RemoteCacheConfig
from pyuistore.exceptions import DatasetNotFoundError
from pyuistore.remote.api import DatasetSource
from pyuistore.remote.paths import DatasetPath, PathSegment, cache_key, is_within
from pyuistore.scheduling import AsyncioTaskScheduler, TaskScheduler, TimerHandle
from pyuistore.store._notify import (
    ChangeNotifier,
    FlushScheduler,
    Listener,
    Unsubscribe,
    split_subscribe_args,
)
from pyuistore.store.interface import Subscribable

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class _Listing:
    names: tuple[str, ...]
    fetched_at: float


class _PollObserver:
    """Periodically refetches one cache key until cancelled."""

    def __init__(
        self,
        cache: RemoteCache,
        scope: str,
        path: tuple[PathSegment, ...],
        key: str,
        interval: float,
    ) -> None:
        self.scope = scope
        self.path = path
        self.key = key
        self.interval = interval
        self._cache = cache
        self._handle: TimerHandle | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self, delay: float | None = None) -> None:
        """Schedule the next tick after *delay* seconds (default: the interval)."""
        if self._cancelled:
            return
        when = self.interval if delay is None else delay
        self._handle = self._cache._scheduler.call_later(when, self._tick)  # noqa: SLF001

    async def _tick(self) -> None:
        self._handle = None
        if self._cancelled:
            return
        try:
            await self._cache._poll(self)  # noqa: SLF001
        except Exception:
            _logger.warning("Poll of %s failed", self.key, exc_info=True)
        finally:
            self.start()

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class RemoteCache(Subscribable):
    """Local cache of remote datasets with optimistic writes and polling.

    Usage::

        async with DatasetApi(config) as api:
            cache = RemoteCache(api, config)
            await cache.preload("main", make_path("inputs", "sales"))
            blob = cache.read("main", make_path("inputs", "sales"))
            cache.destroy()
    """

    def __init__(
        self,
        source: DatasetSource,
        config: RemoteCacheConfig,
        *,
        scheduler: TaskScheduler | None = None,
    ) -> None:
        self._source = source
        self._config = config
        self._scheduler = scheduler if scheduler is not None else AsyncioTaskScheduler()
        self._cache: dict[str, bytes] = {}
        self._notifier = ChangeNotifier()
        self._pending_fetches: dict[str, asyncio.Task[bytes]] = {}
        self._observers: dict[str, _PollObserver] = {}
        self._listings: dict[str, _Listing] = {}
        self._generation = 0

    def get_config(self) -> RemoteCacheConfig:
        return self._config

    # ------------------------------------------------------------------
    # Local reads
    # ------------------------------------------------------------------

    def read(self, scope: str, path: DatasetPath) -> bytes | None:
        """Cached value, or ``None``. Never touches the network."""
        return self._cache.get(cache_key(scope, path))

    def has(self, scope: str, path: DatasetPath) -> bool:
        return cache_key(scope, path) in self._cache

    def is_fetching(self, scope: str, path: DatasetPath) -> bool:
        return cache_key(scope, path) in self._pending_fetches

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _fetch(self, scope: str, path: DatasetPath, key: str) -> asyncio.Task[bytes]:
        """Return the in-flight fetch for *key*, starting one if needed."""
        pending = self._pending_fetches.get(key)
        if pending is not None:
            return pending

        _logger.debug("Fetching %s", key)
        task = asyncio.create_task(self._load(scope, path, key, self._generation))
        self._pending_fetches[key] = task
        return task

    async def _load(self, scope: str, path: DatasetPath, key: str, generation: int) -> bytes:
        """Fetch *key* and cache it unless a value landed meanwhile.

        Caching the result and dropping the pending entry happen in the same
        step, so a caller never sees the key as neither cached nor pending.
        """
        try:
            data = await self._source.get(scope, path)
            if generation == self._generation and key not in self._cache:
                self._cache[key] = data
                self._notify_change(key)
            return data
        finally:
            if self._pending_fetches.get(key) is asyncio.current_task():
                del self._pending_fetches[key]

    async def preload(self, scope: str, path: DatasetPath) -> None:
        """Load a dataset into the cache unless it is already there.

        Concurrent callers for the same key share a single request. A value
        written locally while the fetch was in flight is not overwritten.
        """
        key = cache_key(scope, path)
        if key in self._cache:
            return
        # Shielded so one caller's cancellation does not abort the shared fetch.
        await asyncio.shield(self._fetch(scope, path, key))

    async def list_fields(self, scope: str, path: DatasetPath = ()) -> list[str]:
        """Field names under *path*, cached for ``config.stale_time`` seconds."""
        key = cache_key(scope, path)
        now = self._scheduler.now()
        listing = self._listings.get(key)
        if listing is not None and now - listing.fetched_at < self._config.stale_time:
            return list(listing.names)

        names = await self._source.list(scope, path)
        self._listings[key] = _Listing(tuple(names), now)
        return list(names)

    def cached_fields(self, scope: str, path: DatasetPath = ()) -> list[str] | None:
        listing = self._listings.get(cache_key(scope, path))
        return list(listing.names) if listing is not None else None

    # ------------------------------------------------------------------
    # Optimistic writes
    # ------------------------------------------------------------------

    async def write(self, scope: str, path: DatasetPath, value: bytes) -> None:
        """Apply *value* locally, then persist it remotely.

        If the remote call fails the previous value (or absence) is restored,
        subscribers are notified again, and the error is re-raised. A call
        that completes after :meth:`destroy` leaves the cleared cache alone.
        """
        key = cache_key(scope, path)
        generation = self._generation
        previous = self._cache.get(key)
        self._cache[key] = bytes(value)
        self._notify_change(key)

        try:
            await self._source.set(scope, path, value)
        except BaseException:
            if generation == self._generation:
                if previous is None:
                    self._cache.pop(key, None)
                else:
                    self._cache[key] = previous
                self._notify_change(key)
                _logger.debug("Rolled back optimistic write to %s", key)
            raise

        if generation == self._generation:
            self._invalidate_listings(key)

    def _invalidate_listings(self, key: str) -> None:
        stale = [listed for listed in self._listings if is_within(key, listed) or is_within(listed, key)]
        for listed in stale:
            del self._listings[listed]

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def set_refetch_interval(self, scope: str, path: DatasetPath, interval: float) -> None:
        """Poll *path* every *interval* seconds, replacing any existing poller.

        The first poll runs on the scheduler's next turn. An interval of ``0``
        or less just stops polling the key.
        """
        key = cache_key(scope, path)
        existing = self._observers.pop(key, None)
        if existing is not None:
            existing.cancel()
        if interval <= 0:
            return
        observer = _PollObserver(self, scope, tuple(path), key, interval)
        self._observers[key] = observer
        observer.start(0.0)
        _logger.debug("Polling %s every %.3fs", key, interval)

    def polling_interval(self, scope: str, path: DatasetPath) -> float | None:
        observer = self._observers.get(cache_key(scope, path))
        return observer.interval if observer is not None else None

    async def _poll(self, observer: _PollObserver) -> None:
        key = observer.key
        try:
            data = await asyncio.shield(self._fetch(observer.scope, observer.path, key))
        except DatasetNotFoundError:
            # Dataset became unset remotely.
            if not observer.cancelled and key in self._cache:
                del self._cache[key]
                self._notify_change(key)
            return
        if observer.cancelled:
            return
        if self._cache.get(key) != data:
            self._cache[key] = data
            self._notify_change(key)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def destroy(self) -> None:
        """Stop every poller and clear cache, subscribers and pending fetches.

        In-flight requests are not cancelled, but their results are discarded.
        """
        for observer in self._observers.values():
            observer.cancel()
        self._observers.clear()
        self._notifier.reset()
        self._cache.clear()
        self._pending_fetches.clear()
        self._listings.clear()
        self._generation += 1

    # ------------------------------------------------------------------
    # Subscription contract
    # ------------------------------------------------------------------

    def _notify_change(self, key: str) -> None:
        self._notifier.mark_changed(key)

    def subscribe(self, key_or_callback: str | Listener, callback: Listener | None = None) -> Unsubscribe:
        key, listener = split_subscribe_args(key_or_callback, callback)
        return self._notifier.subscribe(key, listener)

    def get_snapshot(self) -> int:
        return self._notifier.version

    def get_key_version(self, key: str) -> int:
        return self._notifier.key_version(key)

    def batch(self, fn: Callable[[], T]) -> T:
        return self._notifier.batch(fn)

    def set_scheduler(self, scheduler: FlushScheduler | None) -> None:
        self._notifier.set_scheduler(scheduler)
