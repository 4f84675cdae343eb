"""Reactive key-value stores.

Stores are explicit handles: build one with :func:`create_store` (or the
classes directly) and pass it to whatever needs it.
"""

from __future__ import annotations

from collections.abc import Mapping

from pyuistore.backends.base import DurableBackend
from pyuistore.config import PersistenceConfig
from pyuistore.scheduling import TaskScheduler
from pyuistore.store.interface import Computation, StoreInterface, Subscribable
from pyuistore.store.memory import UiStore
from pyuistore.store.persistent import PersistentStore
from pyuistore.store.recompute import RecomputeEngine


def create_store(
    initial_state: Mapping[str, bytes] | None = None,
    *,
    persistence: PersistenceConfig | None = None,
    backend: DurableBackend | None = None,
    scheduler: TaskScheduler | None = None,
) -> StoreInterface:
    """Build a store, choosing the implementation from the arguments.

    With *persistence* a :class:`PersistentStore` is returned (``await
    store.hydrate()`` before relying on persisted state); otherwise a plain
    :class:`UiStore`.
    """
    if persistence is None:
        if backend is not None:
            raise ValueError("backend requires a persistence config")
        return UiStore(initial_state)
    return PersistentStore(
        persistence,
        initial_state=initial_state,
        backend=backend,
        scheduler=scheduler,
    )


__all__ = [
    "Computation",
    "PersistentStore",
    "RecomputeEngine",
    "StoreInterface",
    "Subscribable",
    "UiStore",
    "create_store",
]
