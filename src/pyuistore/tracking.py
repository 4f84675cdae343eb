"""Dependency tracking for reactive reads.

While a :func:`track_dependencies` block is active, typed reads through
:class:`~pyuistore.typed.StateAccessor` and
:class:`~pyuistore.typed.DatasetAccessor` record the keys they touch. The
tracking set lives in a :class:`contextvars.ContextVar`, so concurrent tasks
each see their own, and the previous context is restored however the block
exits.

Usage::

    with track_dependencies() as deps:
        render(accessor)
    # deps now holds every key read during render()

The store's recompute loop does not use this facility.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextvars import ContextVar

_tracking: ContextVar[set[str] | None] = ContextVar("pyuistore_tracking", default=None)


@contextlib.contextmanager
def track_dependencies() -> Iterator[set[str]]:
    """Collect keys read inside the block into the yielded set.

    Nested blocks collect independently; the outer set does not see keys read
    inside an inner block.
    """
    keys: set[str] = set()
    token = _tracking.set(keys)
    try:
        yield keys
    finally:
        _tracking.reset(token)


def track_key(key: str) -> None:
    """Record *key* in the active tracking set, if any."""
    keys = _tracking.get()
    if keys is not None:
        keys.add(key)


def is_tracking() -> bool:
    return _tracking.get() is not None
