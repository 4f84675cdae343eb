from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Mapping
from pathlib import Path

import pytest

from pyuistore.backends.base import BackendTransaction, DurableBackend, TransactionMode
from pyuistore.config import PersistenceConfig
from pyuistore.exceptions import PersistenceError
from pyuistore.scheduling import DeadlineQueue
from pyuistore.store import PersistentStore, create_store


class _RecordingTransaction(BackendTransaction):
    def __init__(self) -> None:
        self.ops: list[tuple[str, str, bytes | None]] = []

    async def put(self, key: str, value: bytes) -> None:
        self.ops.append(("put", key, value))

    async def delete(self, key: str) -> None:
        self.ops.append(("delete", key, None))


class _MemoryBackend(DurableBackend):
    def __init__(self, rows: Mapping[str, bytes] | None = None, *, fail: bool = False) -> None:
        self.rows: dict[str, bytes] = dict(rows or {})
        self.transactions: list[list[tuple[str, str, bytes | None]]] = []
        self.opened_with: tuple[str, int] | None = None
        self.fail = fail
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self, name: str, schema_version: int) -> None:
        self.opened_with = (name, schema_version)
        self._open = True

    async def get_all(self) -> list[tuple[str, bytes]]:
        return list(self.rows.items())

    @contextlib.asynccontextmanager
    async def transaction(self, mode: TransactionMode = "readwrite") -> AsyncIterator[BackendTransaction]:
        tx = _RecordingTransaction()
        yield tx
        if self.fail:
            raise PersistenceError("disk full")
        for op, key, value in tx.ops:
            if op == "put" and value is not None:
                self.rows[key] = value
            else:
                self.rows.pop(key, None)
        self.transactions.append(tx.ops)

    async def close(self) -> None:
        self._open = False


def _config(db_path: str = ":memory:") -> PersistenceConfig:
    return PersistenceConfig(db_path=db_path, debounce_seconds=0.1)


@pytest.mark.asyncio
async def test_writes_are_debounced_into_one_transaction() -> None:
    backend = _MemoryBackend()
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)
    await store.hydrate()

    store.write("a", b"1")
    store.write("b", b"2")
    store.write("a", b"3")

    assert store.read("a") == b"3"
    assert backend.rows == {}
    assert queue.pending == 1

    await queue.advance(0.05)
    assert backend.transactions == []

    await queue.advance(0.05)
    assert len(backend.transactions) == 1
    assert backend.rows == {"a": b"3", "b": b"2"}
    assert store.pending_writes == {}


@pytest.mark.asyncio
async def test_delete_is_persisted_as_tombstone() -> None:
    backend = _MemoryBackend({"a": b"1"})
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)
    await store.hydrate()

    store.write("a", None)
    await queue.advance(0.1)

    assert backend.transactions == [[("delete", "a", None)]]
    assert backend.rows == {}


@pytest.mark.asyncio
async def test_unchanged_writes_are_not_queued() -> None:
    backend = _MemoryBackend({"a": b"1"})
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)
    await store.hydrate()

    store.write("a", b"1")
    store.write("missing", None)

    assert store.pending_writes == {}
    assert queue.pending == 0
    await store.flush()
    assert backend.transactions == []


@pytest.mark.asyncio
async def test_delete_before_hydrate_removes_persisted_row() -> None:
    backend = _MemoryBackend({"a": b"1", "b": b"2"})
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)

    store.write("a", None)
    await store.hydrate()

    assert not store.has("a")
    await queue.advance(0.1)
    assert backend.rows == {"b": b"2"}


@pytest.mark.asyncio
async def test_hydrate_replays_entries_in_one_batch() -> None:
    backend = _MemoryBackend({"a": b"1", "b": b"2"})
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)
    calls: list[int] = []
    store.subscribe(lambda: calls.append(1))

    await store.hydrate()

    assert store.is_hydrated
    assert backend.opened_with == ("east_ui", 1)
    assert store.get_state() == {"a": b"1", "b": b"2"}
    assert calls == [1]
    assert store.get_snapshot() == 1
    assert store.get_key_version("a") == 1
    # Hydration does not write back what it just read.
    assert queue.pending == 0
    assert store.pending_writes == {}


@pytest.mark.asyncio
async def test_writes_before_hydrate_win_and_are_flushed_after() -> None:
    backend = _MemoryBackend({"a": b"disk", "b": b"disk"})
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)

    store.write("a", b"local")
    await store.hydrate()

    assert store.read("a") == b"local"
    assert store.read("b") == b"disk"

    await queue.advance(0.1)
    assert backend.rows == {"a": b"local", "b": b"disk"}


@pytest.mark.asyncio
async def test_render_gc_deletes_orphans_from_backend() -> None:
    backend = _MemoryBackend()
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)
    await store.hydrate()

    store.write("keep", b"1")
    store.write("drop", b"2")
    await queue.advance(0.1)
    assert backend.rows == {"keep": b"1", "drop": b"2"}

    store.begin_render()
    store.read("keep")
    store.read("drop")
    store.end_render()
    store.begin_render()
    store.read("keep")
    removed = store.end_render()

    assert removed == frozenset({"drop"})
    assert not store.has("drop")
    assert store.pending_writes == {"drop": None}

    await queue.advance(0.1)
    assert backend.rows == {"keep": b"1"}


@pytest.mark.asyncio
async def test_timer_flush_failure_is_logged_and_memory_unaffected(caplog: pytest.LogCaptureFixture) -> None:
    backend = _MemoryBackend(fail=True)
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)
    await store.hydrate()

    store.write("a", b"1")
    with caplog.at_level(logging.WARNING, logger="pyuistore.store.persistent"):
        await queue.advance(0.1)

    assert "Debounced flush" in caplog.text
    assert store.read("a") == b"1"
    assert backend.rows == {}


@pytest.mark.asyncio
async def test_explicit_flush_raises_on_failure() -> None:
    backend = _MemoryBackend(fail=True)
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)
    await store.hydrate()

    store.write("a", b"1")
    with pytest.raises(PersistenceError):
        await store.flush()
    # The debounce timer was cancelled by the explicit flush.
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_close_flushes_pending_writes() -> None:
    backend = _MemoryBackend()
    queue = DeadlineQueue()
    store = PersistentStore(_config(), backend=backend, scheduler=queue)
    await store.hydrate()

    store.write("a", b"1")
    await store.close()

    assert backend.rows == {"a": b"1"}
    assert not backend.is_open
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_sqlite_round_trip_through_context_manager(tmp_path: Path) -> None:
    config = _config(str(tmp_path / "ui.db"))

    async with PersistentStore(config, scheduler=DeadlineQueue()) as store:
        store.write("theme", b"dark")
        store.write("tmp", b"x")
        store.write("tmp", None)

    async with PersistentStore(config, scheduler=DeadlineQueue()) as reopened:
        assert reopened.get_state() == {"theme": b"dark"}


@pytest.mark.asyncio
async def test_create_store_with_persistence() -> None:
    backend = _MemoryBackend({"a": b"1"})
    store = create_store(persistence=_config(), backend=backend, scheduler=DeadlineQueue())

    assert isinstance(store, PersistentStore)
    await store.hydrate()
    assert store.read("a") == b"1"


def test_create_store_rejects_backend_without_persistence() -> None:
    with pytest.raises(ValueError):
        create_store(backend=_MemoryBackend())


@pytest.mark.asyncio
async def test_derived_computations_and_subscriptions_pass_through() -> None:
    store = PersistentStore(_config(), backend=_MemoryBackend(), scheduler=DeadlineQueue())
    await store.hydrate()
    store.register("size", lambda state: len(state))
    versions: list[int] = []
    store.subscribe("a", lambda: versions.append(store.get_key_version("a")))

    store.batch(lambda: (store.write("a", b"1"), store.write("b", b"2")))

    assert store.get_result("size") == 2
    assert versions == [1]
