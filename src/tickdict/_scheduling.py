"""Deferred-task scheduling — the host "run on next tick" primitive.

Cooperative traversals never run a step inline. Every step goes through
defer(), which hands it to whichever scheduler is active:

1. the scheduler installed with set_scheduler(), if any;
2. the running asyncio loop (loop.call_soon), when called from inside one;
3. the process-wide default TickQueue, drained with run_pending().

All schedulers share one contract: defer(fn) eventually calls fn after the
current synchronous code has finished, in FIFO order.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable

Task = Callable[[], None]
Scheduler = Callable[[Task], None]


class TickQueue:
    """FIFO queue of deferred tasks, drained one tick at a time.

    A tick runs only the tasks that were queued when it started. Tasks
    deferred while a tick is running wait for the next tick, so a traversal
    that re-schedules itself processes at most one element per tick.
    """

    def __init__(self) -> None:
        self._tasks: deque[Task] = deque()

    def defer(self, fn: Task) -> None:
        self._tasks.append(fn)

    def run_once(self) -> int:
        """Run one tick. Returns the number of tasks that ran."""
        count = len(self._tasks)
        for _ in range(count):
            self._tasks.popleft()()
        return count

    def run_until_idle(self, max_ticks: int | None = None) -> int:
        """Run ticks until nothing is pending. Returns the number of ticks run."""
        ticks = 0
        while self._tasks and (max_ticks is None or ticks < max_ticks):
            self.run_once()
            ticks += 1
        return ticks

    def __len__(self) -> int:
        return len(self._tasks)

    def __repr__(self) -> str:
        return f"TickQueue(pending={len(self._tasks)})"


# Used when no scheduler is installed and no asyncio loop is running.
_default_queue = TickQueue()

_scheduler: Scheduler | None = None


def set_scheduler(scheduler: Scheduler | None) -> None:
    """Install the global defer primitive, or None to restore the default.

    Usage:
        queue = TickQueue()
        tickdict.set_scheduler(queue.defer)
    """
    global _scheduler
    _scheduler = scheduler


def get_scheduler() -> Scheduler:
    """Resolve the scheduler defer() would use right now."""
    if _scheduler is not None:
        return _scheduler
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return _default_queue.defer
    return loop.call_soon


def defer(fn: Task) -> None:
    """Schedule fn on the active scheduler. Never calls fn inline."""
    get_scheduler()(fn)


def run_pending(max_ticks: int | None = None) -> int:
    """Drain the default queue. Returns the number of ticks run."""
    return _default_queue.run_until_idle(max_ticks)


def get_pending_count() -> int:
    """Number of tasks waiting in the default queue. Useful for testing."""
    return len(_default_queue)
