"""Durable backing store interface.

The persistence adapter only needs a transactional map of
``(str key, bytes value)`` pairs; any storage engine that can provide the
operations below can back a :class:`~pyuistore.store.persistent.PersistentStore`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Literal

TransactionMode = Literal["readonly", "readwrite"]


class BackendTransaction(ABC):
    """Operations staged inside one backend transaction."""

    @abstractmethod
    async def put(self, key: str, value: bytes) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...


class DurableBackend(ABC):
    """Generic transactional key-value store.

    ``transaction()`` is an async context manager: it commits when the block
    exits cleanly and rolls back (raising
    :class:`~pyuistore.exceptions.PersistenceError`) when it does not.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    async def open(self, name: str, schema_version: int) -> None:
        """Open (creating if needed) the store at *schema_version*."""

    @abstractmethod
    async def get_all(self) -> list[tuple[str, bytes]]:
        """Every persisted ``(key, value)`` pair."""

    @abstractmethod
    def transaction(self, mode: TransactionMode = "readwrite") -> AbstractAsyncContextManager[BackendTransaction]:
        """Open a transaction."""

    @abstractmethod
    async def close(self) -> None: ...
