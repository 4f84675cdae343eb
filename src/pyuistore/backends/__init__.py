"""Durable backends for :class:`~pyuistore.store.persistent.PersistentStore`."""

from pyuistore.backends.base import BackendTransaction, DurableBackend, TransactionMode
from pyuistore.backends.sqlite import SqliteBackend

__all__ = [
    "BackendTransaction",
    "DurableBackend",
    "SqliteBackend",
    "TransactionMode",
]
