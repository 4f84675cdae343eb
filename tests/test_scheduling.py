from __future__ import annotations

import asyncio

import pytest

from pyuistore.scheduling import AsyncioTaskScheduler, DeadlineQueue


@pytest.mark.asyncio
async def test_deadline_queue_fires_in_deadline_order() -> None:
    queue = DeadlineQueue()
    fired: list[str] = []
    queue.call_later(2.0, lambda: fired.append("late"))
    queue.call_later(1.0, lambda: fired.append("early"))
    queue.call_later(5.0, lambda: fired.append("future"))

    await queue.advance(2.0)

    assert fired == ["early", "late"]
    assert queue.now() == 2.0
    assert queue.pending == 1
    assert queue.next_deadline() == 5.0


@pytest.mark.asyncio
async def test_deadline_queue_skips_cancelled_handles() -> None:
    queue = DeadlineQueue()
    fired: list[str] = []
    handle = queue.call_later(1.0, lambda: fired.append("x"))

    handle.cancel()
    handle.cancel()
    await queue.advance(1.0)

    assert handle.cancelled
    assert fired == []
    assert queue.pending == 0
    assert queue.next_deadline() is None


@pytest.mark.asyncio
async def test_deadline_queue_awaits_coroutine_callbacks() -> None:
    queue = DeadlineQueue()
    fired: list[float] = []

    async def _tick() -> None:
        await asyncio.sleep(0)
        fired.append(queue.now())
        queue.call_later(1.0, _tick)

    queue.call_later(1.0, _tick)
    await queue.advance(3.0)

    assert fired == [1.0, 2.0, 3.0]
    assert queue.pending == 1


@pytest.mark.asyncio
async def test_deadline_queue_propagates_callback_errors() -> None:
    queue = DeadlineQueue()

    async def _boom() -> None:
        raise RuntimeError("boom")

    queue.call_later(0.5, _boom)
    with pytest.raises(RuntimeError):
        await queue.advance(1.0)


@pytest.mark.asyncio
async def test_asyncio_scheduler_runs_sync_and_async_callbacks() -> None:
    scheduler = AsyncioTaskScheduler()
    fired: list[str] = []

    async def _async_cb() -> None:
        fired.append("async")

    scheduler.call_later(0.01, lambda: fired.append("sync"))
    scheduler.call_later(0.02, _async_cb)
    await asyncio.sleep(0.05)
    await scheduler.wait_idle()

    assert fired == ["sync", "async"]


@pytest.mark.asyncio
async def test_asyncio_scheduler_cancel_prevents_callback() -> None:
    scheduler = AsyncioTaskScheduler()
    fired: list[str] = []

    handle = scheduler.call_later(0.01, lambda: fired.append("x"))
    handle.cancel()
    await asyncio.sleep(0.03)

    assert fired == []
