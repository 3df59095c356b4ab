"""Event-loop capabilities used by the refresh scheduler.

The scheduler never talks to an event loop directly. It receives a
TaskScheduler that can arm a delayed callback, cancel it and read a
monotonic clock. Production code uses the asyncio loop; tests drive a
virtual clock by hand.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from collections.abc import Callable
from typing import Final, Protocol, runtime_checkable

logger: Final = logging.getLogger(__name__)


@runtime_checkable
class TaskHandle(Protocol):
    """Handle of a pending delayed callback."""

    def cancel(self) -> None:
        """Cancel the callback if it has not run yet."""
        ...

    def cancelled(self) -> bool:
        """Return True if the callback was cancelled."""
        ...


@runtime_checkable
class TaskScheduler(Protocol):
    """Protocol for arming delayed callbacks on the shared event loop."""

    def schedule_in(self, delay: float, callback: Callable[[], object]) -> TaskHandle:
        """Run ``callback`` once after ``delay`` seconds.

        Args:
            delay: Seconds to wait
            callback: Zero-argument callable

        Returns:
            Handle that can cancel the pending callback
        """
        ...

    def monotonic(self) -> float:
        """Return the loop's monotonic clock reading in seconds."""
        ...


class AsyncioTaskScheduler:
    """TaskScheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop

    def schedule_in(self, delay: float, callback: Callable[[], object]) -> TaskHandle:
        return self.loop.call_later(delay, callback)

    def monotonic(self) -> float:
        return self.loop.time()


class ManualTask:
    """A callback pending on a ManualTaskScheduler."""

    def __init__(self, when: float, callback: Callable[[], object]) -> None:
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualTaskScheduler:
    """TaskScheduler with a virtual clock advanced explicitly.

    Used by the tests and by one-shot CLI runs, where callbacks only run
    when ``advance()`` or ``run_until_idle()`` is called.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._queue: list[tuple[float, int, ManualTask]] = []
        self._counter = itertools.count()

    def schedule_in(self, delay: float, callback: Callable[[], object]) -> ManualTask:
        task = ManualTask(self.now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (task.when, next(self._counter), task))
        return task

    def monotonic(self) -> float:
        return self.now

    @property
    def pending(self) -> list[ManualTask]:
        """Pending (not cancelled, not yet run) tasks in firing order."""
        return [task for _, _, task in sorted(self._queue) if not task.cancelled()]

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every callback that falls due.

        Callbacks armed while advancing run too if they fall inside the window.

        Args:
            seconds: How far to move the clock

        Returns:
            Number of callbacks run
        """
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, task = heapq.heappop(self._queue)
            if task.cancelled():
                continue
            self.now = when
            task.callback()
            ran += 1
        self.now = target
        return ran

    def run_until_idle(self, limit: float = 86400.0) -> int:
        """Run callbacks until nothing is pending within ``limit`` seconds.

        Useful for driving one cycle to completion without knowing its
        internal delays. Stops at the first gap larger than ``limit``.
        """
        ran = 0
        while self.pending:
            next_when = self.pending[0].when
            if next_when - self.now > limit:
                break
            ran += self.advance(next_when - self.now)
        return ran
