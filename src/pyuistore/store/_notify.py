"""Versioned change notification shared by the store implementations.

Each store owns its own :class:`ChangeNotifier`; nothing here is shared across
store instances.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[], None]
Unsubscribe = Callable[[], None]
FlushScheduler = Callable[[Callable[[], None]], None]


def split_subscribe_args(
    key_or_callback: str | Listener,
    callback: Listener | None,
) -> tuple[str | None, Listener]:
    """Normalize ``subscribe(callback)`` / ``subscribe(key, callback)``."""
    if isinstance(key_or_callback, str):
        if callback is None:
            raise TypeError("subscribe(key, callback) requires a callback")
        return key_or_callback, callback
    if callback is not None:
        raise TypeError("subscribe(callback) takes a single callable")
    if not callable(key_or_callback):
        raise TypeError(f"subscribe expects a key or a callable, got {type(key_or_callback).__name__}")
    return None, key_or_callback


class ChangeNotifier:
    """Version counters, subscribers, batching, and flush scheduling.

    ``mark_changed(key)`` bumps the key's version and records it as changed.
    Outside a batch that triggers a flush; inside one the flush waits for the
    outermost batch to close.  A flush bumps the global version once, calls
    ``on_flush`` (used to re-run derived computations), then key-scoped and
    global subscribers.
    """

    def __init__(self, *, on_flush: Callable[[], None] | None = None) -> None:
        self._version = 0
        self._key_versions: dict[str, int] = {}
        self._key_subscribers: dict[str, set[Listener]] = {}
        self._global_subscribers: set[Listener] = set()
        self._batch_depth = 0
        self._changed: set[str] = set()
        self._scheduler: FlushScheduler | None = None
        self._flush_pending = False
        self._on_flush = on_flush

    @property
    def version(self) -> int:
        return self._version

    def key_version(self, key: str) -> int:
        return self._key_versions.get(key, 0)

    def subscribe(self, key: str | None, callback: Listener) -> Unsubscribe:
        if key is None:
            self._global_subscribers.add(callback)

            def _unsubscribe_global() -> None:
                self._global_subscribers.discard(callback)

            return _unsubscribe_global

        subs = self._key_subscribers.setdefault(key, set())
        subs.add(callback)

        def _unsubscribe_key() -> None:
            current = self._key_subscribers.get(key)
            if current is None:
                return
            current.discard(callback)
            if not current:
                del self._key_subscribers[key]

        return _unsubscribe_key

    def has_subscribers(self, key: str) -> bool:
        return key in self._key_subscribers

    def set_scheduler(self, scheduler: FlushScheduler | None) -> None:
        self._scheduler = scheduler

    def batch(self, fn: Callable[[], T]) -> T:
        self._batch_depth += 1
        try:
            return fn()
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self.flush()

    def mark_changed(self, key: str) -> None:
        self._key_versions[key] = self._key_versions.get(key, 0) + 1
        self._changed.add(key)
        if self._batch_depth == 0:
            self.flush()

    def flush(self) -> None:
        if not self._changed:
            return
        if self._scheduler is None:
            self.do_flush()
            return
        # Defer delivery; further requests in this window coalesce.
        if not self._flush_pending:
            self._flush_pending = True
            self._scheduler(self.do_flush)

    def do_flush(self) -> None:
        self._flush_pending = False
        if not self._changed:
            return
        # Swap first so writes made by subscribers start a fresh cycle.
        changed, self._changed = self._changed, set()
        self._version += 1
        _logger.debug("Flush v%d: %d changed key(s)", self._version, len(changed))

        if self._on_flush is not None:
            self._on_flush()

        for key in changed:
            subs = self._key_subscribers.get(key)
            if subs:
                for cb in list(subs):
                    cb()

        for cb in list(self._global_subscribers):
            cb()

    def clear_subscribers(self) -> None:
        self._key_subscribers.clear()
        self._global_subscribers.clear()

    def reset(self) -> None:
        """Drop subscribers and any undelivered changes."""
        self.clear_subscribers()
        self._changed.clear()
        self._flush_pending = False
