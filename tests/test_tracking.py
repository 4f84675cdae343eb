from __future__ import annotations

import asyncio

import pytest

from pyuistore.store import UiStore
from pyuistore.tracking import is_tracking, track_dependencies, track_key
from pyuistore.typed import StateAccessor


def test_reads_inside_block_are_recorded() -> None:
    state = StateAccessor(UiStore())
    state.write("count", int, 1)

    with track_dependencies() as deps:
        assert is_tracking()
        state.read("count", int)
        state.get("missing", int)

    assert deps == {"count", "missing"}
    assert not is_tracking()


def test_reads_outside_block_are_not_recorded() -> None:
    track_key("ignored")
    with track_dependencies() as deps:
        pass
    assert deps == set()


def test_nested_blocks_collect_independently() -> None:
    with track_dependencies() as outer:
        track_key("a")
        with track_dependencies() as inner:
            track_key("b")
        track_key("c")

    assert outer == {"a", "c"}
    assert inner == {"b"}


def test_context_restored_when_block_raises() -> None:
    with pytest.raises(RuntimeError), track_dependencies():
        raise RuntimeError("boom")

    assert not is_tracking()


@pytest.mark.asyncio
async def test_concurrent_tasks_track_separately() -> None:
    async def _collect(key: str) -> set[str]:
        with track_dependencies() as deps:
            track_key(key)
            await asyncio.sleep(0)
            track_key(key + "-after")
        return deps

    first, second = await asyncio.gather(_collect("a"), _collect("b"))

    assert first == {"a", "a-after"}
    assert second == {"b", "b-after"}
