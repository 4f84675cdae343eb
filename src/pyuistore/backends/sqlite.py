"""SQLite durable backend (via aiosqlite)."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from pathlib import Path

import aiosqlite

from pyuistore._constants import DEFAULT_TABLE_NAME
from pyuistore.backends.base import BackendTransaction, DurableBackend, TransactionMode
from pyuistore.exceptions import PersistenceError

_logger = logging.getLogger(__name__)

_MEMORY_PATH = ":memory:"


class _SqliteTransaction(BackendTransaction):
    def __init__(self, db: aiosqlite.Connection, table_name: str, *, readonly: bool) -> None:
        self._db = db
        self._table = table_name
        self._readonly = readonly

    def _check_writable(self) -> None:
        if self._readonly:
            raise PersistenceError("Cannot modify the store inside a readonly transaction")

    async def put(self, key: str, value: bytes) -> None:
        self._check_writable()
        await self._db.execute(
            f"INSERT OR REPLACE INTO {self._table} (key, value) VALUES (?, ?)",
            (key, bytes(value)),
        )

    async def delete(self, key: str) -> None:
        self._check_writable()
        await self._db.execute(f"DELETE FROM {self._table} WHERE key = ?", (key,))


class SqliteBackend(DurableBackend):
    """Persistent blob store using one SQLite table ``(key TEXT, value BLOB)``.

    The schema version is kept in ``PRAGMA user_version``; opening a database
    written by a newer schema fails rather than silently downgrading it.
    """

    def __init__(self, path: str | Path, *, table_name: str = DEFAULT_TABLE_NAME) -> None:
        if not table_name.isidentifier():
            raise ValueError(f"table_name must be a valid identifier, got {table_name!r}")
        self._path = str(path)
        self._table = table_name
        self._db: aiosqlite.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._db is not None

    def _require_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise PersistenceError("Backend not opened. Call 'await backend.open(...)' first.")
        return self._db

    async def open(self, name: str, schema_version: int) -> None:
        if self._db is not None:
            return

        if self._path != _MEMORY_PATH:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        try:
            db = await aiosqlite.connect(self._path)
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Failed to open {name!r} at {self._path}: {exc}") from exc

        try:
            async with db.execute("PRAGMA user_version") as cursor:
                row = await cursor.fetchone()
            current = int(row[0]) if row else 0
            if current > schema_version:
                raise PersistenceError(
                    f"{name!r} has schema version {current}, newer than supported version {schema_version}"
                )
            await db.execute(f"CREATE TABLE IF NOT EXISTS {self._table} (key TEXT PRIMARY KEY, value BLOB NOT NULL)")
            if current < schema_version:
                await db.execute(f"PRAGMA user_version = {int(schema_version)}")
            await db.commit()
        except aiosqlite.Error as exc:
            await db.close()
            raise PersistenceError(f"Failed to initialize {name!r}: {exc}") from exc
        except BaseException:
            await db.close()
            raise

        self._db = db
        _logger.info("Opened SQLite store %r at %s (schema v%d)", name, self._path, schema_version)

    async def get_all(self) -> list[tuple[str, bytes]]:
        db = self._require_db()
        try:
            async with db.execute(f"SELECT key, value FROM {self._table}") as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Failed to enumerate {self._table}: {exc}") from exc
        return [(str(key), bytes(value)) for key, value in rows]

    @contextlib.asynccontextmanager
    async def transaction(self, mode: TransactionMode = "readwrite") -> AsyncIterator[BackendTransaction]:
        db = self._require_db()
        tx = _SqliteTransaction(db, self._table, readonly=mode == "readonly")
        try:
            yield tx
            await db.commit()
        except aiosqlite.Error as exc:
            await db.rollback()
            raise PersistenceError(f"Transaction on {self._table} failed: {exc}") from exc
        except BaseException:
            await db.rollback()
            raise

    async def close(self) -> None:
        db = self._db
        self._db = None
        if db is not None:
            await db.close()
