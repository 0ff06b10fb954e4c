# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Timer scheduling for delayed engine work (match expiry, recognizer restarts).

Anything with ``time()`` and ``call_later(delay, callback)`` returning a
cancelable handle works as a scheduler, so a running asyncio event loop can be
passed in directly. ManualScheduler provides a logical clock for tests and for
replaying recorded sessions without waiting on the wall clock.
"""

import heapq
import itertools
import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled before it runs."""

    def cancel(self) -> None:
        """Prevent the callback from running."""


class Scheduler(Protocol):
    """Minimal subset of the asyncio event loop API used by the engine."""

    def time(self) -> float:
        """Current time in seconds on this scheduler's clock."""

    def call_later(self, delay: float, callback: Callable[..., object],
                   *args: object) -> TimerHandle:
        """Run ``callback(*args)`` once ``delay`` seconds have elapsed."""


class ManualTimerHandle:
    """Handle returned by ManualScheduler.call_later."""

    def __init__(self, when: float, callback: Callable[..., object],
                 args: tuple[object, ...]) -> None:
        self.when = when
        self._callback = callback
        self._args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self) -> None:
        self._callback(*self._args)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "pending"
        return f"ManualTimerHandle(when={self.when:.3f}, {state})"


class ManualScheduler:
    """
    Deterministic scheduler driven by explicit clock advances.

    Callbacks run only from advance()/advance_to(), in deadline order, with
    ties broken by the order they were scheduled.

    Usage:
        scheduler = ManualScheduler()
        scheduler.call_later(5.0, cache_entry_expired)
        scheduler.advance(5.0)  # runs the callback
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now: float = start
        self._queue: list[tuple[float, int, ManualTimerHandle]] = []
        self._counter = itertools.count()

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., object],
                   *args: object) -> ManualTimerHandle:
        handle = ManualTimerHandle(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every callback that falls due.

        Returns:
            Number of callbacks that ran.
        """
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        return self.advance_to(self._now + seconds)

    def advance_to(self, when: float) -> int:
        """Move the clock to an absolute time, running due callbacks."""
        ran = 0
        while self._queue and self._queue[0][0] <= when:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled():
                continue
            # Callbacks observe the clock at their own deadline
            self._now = max(self._now, due)
            handle._run()  # pylint: disable=protected-access
            ran += 1
        self._now = max(self._now, when)
        return ran

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not been cancelled."""
        return sum(1 for _, _, h in self._queue if not h.cancelled())
