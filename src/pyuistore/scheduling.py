"""Timer scheduling for debounced flushes and polling.

Every delayed callback in pyuistore goes through a :class:`TaskScheduler`.
Production code uses :class:`AsyncioTaskScheduler`, which sits on the running
event loop. Tests use :class:`DeadlineQueue`, a manual clock that only fires
callbacks when :meth:`DeadlineQueue.advance` is awaited, so debounce and
polling behaviour can be asserted without real wall-clock delays.

A callback may be a plain function or return an awaitable; awaitables are
driven to completion by the scheduler.
"""

from __future__ import annotations

import asyncio
import heapq
import inspect
import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

_logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[Any] | None]


class TimerHandle:
    """Handle returned by :meth:`TaskScheduler.call_later`."""

    __slots__ = ("deadline", "callback", "_cancelled", "_on_cancel")

    def __init__(self, deadline: float, callback: TimerCallback) -> None:
        self.deadline = deadline
        self.callback = callback
        self._cancelled = False
        self._on_cancel: Callable[[], None] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Prevent the callback from firing. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "pending"
        return f"<TimerHandle deadline={self.deadline:.3f} {state}>"


class TaskScheduler(ABC):
    """Schedules callbacks at a deadline relative to the scheduler's clock."""

    @abstractmethod
    def now(self) -> float:
        """Current time on this scheduler's clock, in seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Run *callback* after *delay* seconds."""


class AsyncioTaskScheduler(TaskScheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Future[Any]] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self._get_loop().time()

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        loop = self._get_loop()
        handle = TimerHandle(loop.time() + max(delay, 0.0), callback)
        loop_handle = loop.call_later(max(delay, 0.0), self._fire, handle)
        handle._on_cancel = loop_handle.cancel  # noqa: SLF001
        return handle

    def _fire(self, handle: TimerHandle) -> None:
        if handle.cancelled:
            return
        handle._on_cancel = None  # noqa: SLF001
        result = handle.callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self._get_loop())
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Scheduled task failed", exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait for every callback task started so far to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class DeadlineQueue(TaskScheduler):
    """Deterministic scheduler driven by a manual clock.

    Usage::

        queue = DeadlineQueue()
        queue.call_later(0.1, flush)
        await queue.advance(0.1)   # flush runs here
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        handle = TimerHandle(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._heap, (handle.deadline, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        """Number of scheduled, not-yet-cancelled callbacks."""
        return sum(1 for _, _, handle in self._heap if not handle.cancelled)

    def next_deadline(self) -> float | None:
        for deadline, _, handle in sorted(self._heap):
            if not handle.cancelled:
                return deadline
        return None

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in deadline order.

        Callbacks scheduled by a firing callback run in the same call if their
        deadline falls inside the window. Exceptions propagate to the caller.
        """
        target = self._now + seconds
        while self._heap and self._heap[0][0] <= target:
            deadline, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            self._now = deadline
            result = handle.callback()
            if inspect.isawaitable(result):
                await result
        self._now = target
