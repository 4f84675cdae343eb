"""In-memory reactive key-value store.

This is the source of truth for UI state: every other layer either wraps it
(:class:`~pyuistore.store.persistent.PersistentStore`) or mirrors its
subscription contract (:class:`~pyuistore.remote.cache.RemoteCache`).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, TypeVar

from pyuistore.store._notify import (
    ChangeNotifier,
    FlushScheduler,
    Listener,
    Unsubscribe,
    split_subscribe_args,
)
from pyuistore.store.interface import Computation, StoreInterface
from pyuistore.store.recompute import RecomputeEngine

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class UiStore(StoreInterface):
    """Reactive store of opaque blobs with render-cycle garbage collection.

    Usage::

        store = UiStore({"count": b"0"})
        unsubscribe = store.subscribe("count", on_count_changed)
        store.batch(lambda: (store.write("a", b"1"), store.write("b", b"2")))
    """

    def __init__(self, initial_state: Mapping[str, bytes] | None = None) -> None:
        self._state: dict[str, bytes] = dict(initial_state or {})
        self._engine = RecomputeEngine()
        self._notifier = ChangeNotifier(on_flush=self._recompute)
        self._previous_active: set[str] = set()
        self._current_active: set[str] = set()

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    def read(self, key: str) -> bytes | None:
        self._current_active.add(key)
        return self._state.get(key)

    def write(self, key: str, value: bytes | None) -> None:
        existing = self._state.get(key)
        if value is None:
            if key not in self._state:
                return
            del self._state[key]
        else:
            if existing is not None and existing == value:
                return
            self._state[key] = bytes(value)
        self._notifier.mark_changed(key)

    def has(self, key: str) -> bool:
        return key in self._state

    def get_state(self) -> dict[str, bytes]:
        return dict(self._state)

    # ------------------------------------------------------------------
    # Render-cycle GC
    # ------------------------------------------------------------------

    def mark_active(self, key: str) -> None:
        self._current_active.add(key)

    def begin_render(self) -> None:
        self._previous_active = self._current_active
        self._current_active = set()

    def end_render(self) -> frozenset[str]:
        orphaned = frozenset(self._previous_active - self._current_active)
        for key in orphaned:
            self._state.pop(key, None)
        if orphaned:
            _logger.debug("Render GC removed %d key(s)", len(orphaned))
        return orphaned

    def get_active_keys(self) -> frozenset[str]:
        return frozenset(self._current_active)

    # ------------------------------------------------------------------
    # Derived computations
    # ------------------------------------------------------------------

    def register(self, registration_id: str, computation: Computation) -> None:
        self._engine.register(registration_id, computation, MappingProxyType(dict(self._state)))

    def get_result(self, registration_id: str) -> Any | None:
        return self._engine.get_result(registration_id)

    def _recompute(self) -> None:
        if len(self._engine):
            self._engine.recompute(MappingProxyType(dict(self._state)))

    # ------------------------------------------------------------------
    # Subscription contract
    # ------------------------------------------------------------------

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
