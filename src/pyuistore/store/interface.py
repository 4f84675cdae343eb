"""Formal store interfaces.

:class:`Subscribable` is the change-notification contract shared by the
key-value stores and the remote dataset cache. :class:`StoreInterface` is the
full key-value store contract; consumers should depend on it rather than on a
concrete implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any, TypeVar, overload

from pyuistore.store._notify import FlushScheduler, Listener, Unsubscribe

T = TypeVar("T")

Computation = Callable[[Mapping[str, bytes]], Any]


class Subscribable(ABC):
    """Versioned subscription contract.

    Shaped for a "poll a cheap value, re-render on change" consumer:
    ``get_snapshot`` changes whenever any key changed, ``get_key_version``
    changes whenever that key changed.
    """

    @overload
    def subscribe(self, key_or_callback: Listener, callback: None = None) -> Unsubscribe: ...

    @overload
    def subscribe(self, key_or_callback: str, callback: Listener) -> Unsubscribe: ...

    @abstractmethod
    def subscribe(self, key_or_callback: str | Listener, callback: Listener | None = None) -> Unsubscribe:
        """Subscribe globally (``subscribe(cb)``) or to one key (``subscribe(key, cb)``).

        Returns a callable that removes the subscription.
        """

    @abstractmethod
    def get_snapshot(self) -> int:
        """Global version, bumped once per flush."""

    @abstractmethod
    def get_key_version(self, key: str) -> int:
        """Per-key version, ``0`` if the key never changed."""

    @abstractmethod
    def batch(self, fn: Callable[[], T]) -> T:
        """Run *fn*, coalescing its notifications into a single flush."""

    @abstractmethod
    def set_scheduler(self, scheduler: FlushScheduler | None) -> None:
        """Defer flushes through ``scheduler(do_flush)``; ``None`` flushes synchronously."""


class StoreInterface(Subscribable):
    """Reactive key-value store of opaque blobs."""

    @abstractmethod
    def read(self, key: str) -> bytes | None:
        """Return the blob for *key* (``None`` if absent) and mark it active."""

    @abstractmethod
    def write(self, key: str, value: bytes | None) -> None:
        """Set *key* to *value*; ``None`` deletes it."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Membership test. Does not mark the key active."""

    @abstractmethod
    def mark_active(self, key: str) -> None:
        """Keep *key* alive through the current render cycle without reading it."""

    @abstractmethod
    def begin_render(self) -> None:
        """Start a render cycle."""

    @abstractmethod
    def end_render(self) -> frozenset[str]:
        """Finish a render cycle, deleting keys that went inactive. Returns them."""

    @abstractmethod
    def get_state(self) -> dict[str, bytes]:
        """Copy of the full key-value map."""

    @abstractmethod
    def register(self, registration_id: str, computation: Computation) -> None:
        """Bind a derived computation, re-run on every flush."""

    @abstractmethod
    def get_result(self, registration_id: str) -> Any | None:
        """Last result of a registered computation, ``None`` if unknown."""
