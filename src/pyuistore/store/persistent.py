"""Persistence adapter: an in-memory store mirrored into a durable backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from pyuistore.backends.base import DurableBackend
from pyuistore.backends.sqlite import SqliteBackend
from pyuistore.config import PersistenceConfig
from pyuistore.exceptions import PersistenceError
from pyuistore.scheduling import AsyncioTaskScheduler, TaskScheduler, TimerHandle
from pyuistore.store._notify import FlushScheduler, Listener, Unsubscribe
from pyuistore.store.interface import Computation, StoreInterface
from pyuistore.store.memory import UiStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistentStore(StoreInterface):
    """Store whose writes are mirrored asynchronously into a durable backend.

    Writes are visible to readers immediately and reach the backend within one
    debounce window. A crash inside that window loses the write from durable
    storage; in-memory state is always the source of truth.

    Usage::

        async with PersistentStore(PersistenceConfig(db_path="state.db")) as store:
            store.write("count", b"1")
    """

    def __init__(
        self,
        config: PersistenceConfig,
        *,
        initial_state: Mapping[str, bytes] | None = None,
        backend: DurableBackend | None = None,
        scheduler: TaskScheduler | None = None,
    ) -> None:
        self._config = config
        self._inner = UiStore(initial_state)
        self._backend = backend if backend is not None else SqliteBackend(config.db_path, table_name=config.table_name)
        self._scheduler = scheduler if scheduler is not None else AsyncioTaskScheduler()
        self._pending: dict[str, bytes | None] = {}
        self._flush_handle: TimerHandle | None = None
        self._flush_lock = asyncio.Lock()
        self._hydrated = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PersistentStore:
        await self.hydrate()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def inner(self) -> UiStore:
        return self._inner

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    @property
    def pending_writes(self) -> dict[str, bytes | None]:
        return dict(self._pending)

    async def hydrate(self) -> None:
        """Open the backend and replay every persisted entry into memory.

        Keys written before hydration keep their in-memory value; those writes
        are flushed to the backend afterwards.
        """
        await self._backend.open(self._config.db_name, self._config.schema_version)
        entries = await self._backend.get_all()

        def _replay() -> None:
            for key, value in entries:
                if key in self._pending:
                    continue
                self._inner.write(key, value)

        self._inner.batch(_replay)
        self._hydrated = True
        _logger.debug("Hydrated %d persisted key(s) from %r", len(entries), self._config.db_name)

        if self._pending:
            self._schedule_flush()

    async def flush(self) -> None:
        """Write pending changes to the backend now instead of after the debounce.

        Raises :class:`~pyuistore.exceptions.PersistenceError` if the
        transaction fails.
        """
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        await self._write_pending()

    async def close(self) -> None:
        """Flush pending writes and close the backend."""
        try:
            if self._backend.is_open:
                await self.flush()
        finally:
            await self._backend.close()

    # ------------------------------------------------------------------
    # Debounced flush
    # ------------------------------------------------------------------

    def _schedule_flush(self) -> None:
        if self._flush_handle is not None:
            return
        self._flush_handle = self._scheduler.call_later(self._config.debounce_seconds, self._on_flush_timer)

    async def _on_flush_timer(self) -> None:
        self._flush_handle = None
        try:
            await self._write_pending()
        except PersistenceError:
            _logger.warning("Debounced flush to %r failed; in-memory state is unaffected", self._config.db_name, exc_info=True)

    async def _write_pending(self) -> None:
        async with self._flush_lock:
            # Not hydrated yet: keep the writes until the backend is open.
            if not self._backend.is_open or not self._pending:
                return
            writes, self._pending = self._pending, {}
            async with self._backend.transaction("readwrite") as tx:
                for key, value in writes.items():
                    if value is None:
                        await tx.delete(key)
                    else:
                        await tx.put(key, value)
            _logger.debug("Flushed %d pending write(s) to %r", len(writes), self._config.db_name)

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    def read(self, key: str) -> bytes | None:
        return self._inner.read(key)

    def write(self, key: str, value: bytes | None) -> None:
        before = self._inner.get_key_version(key)
        self._inner.write(key, value)
        # Before hydration a no-op in memory may still shadow a persisted row.
        if self._hydrated and self._inner.get_key_version(key) == before:
            return
        self._pending[key] = value
        self._schedule_flush()

    def has(self, key: str) -> bool:
        return self._inner.has(key)

    def get_state(self) -> dict[str, bytes]:
        return self._inner.get_state()

    def mark_active(self, key: str) -> None:
        self._inner.mark_active(key)

    def begin_render(self) -> None:
        self._inner.begin_render()

    def end_render(self) -> frozenset[str]:
        orphaned = self._inner.end_render()
        if orphaned:
            # Deletions ride the next debounced transaction.
            for key in orphaned:
                self._pending[key] = None
            self._schedule_flush()
        return orphaned

    def get_active_keys(self) -> frozenset[str]:
        return self._inner.get_active_keys()

    def register(self, registration_id: str, computation: Computation) -> None:
        self._inner.register(registration_id, computation)

    def get_result(self, registration_id: str) -> Any | None:
        return self._inner.get_result(registration_id)

    def subscribe(self, key_or_callback: str | Listener, callback: Listener | None = None) -> Unsubscribe:
        return self._inner.subscribe(key_or_callback, callback)

    def get_snapshot(self) -> int:
        return self._inner.get_snapshot()

    def get_key_version(self, key: str) -> int:
        return self._inner.get_key_version(key)

    def batch(self, fn: Callable[[], T]) -> T:
        return self._inner.batch(fn)

    def set_scheduler(self, scheduler: FlushScheduler | None) -> None:
        self._inner.set_scheduler(scheduler)
