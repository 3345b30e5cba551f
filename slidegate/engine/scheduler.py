"""Timers and animation frames.

The engine never sleeps. Anything that has to happen later goes through a
``Scheduler``: ``call_later`` for pacing delays and debounces,
``request_frame`` for work that must run on the next paint.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle: ...

    def request_frame(self, callback: Callable[[], None]) -> Handle: ...


class _Timer:
    def __init__(self, when: float, seq: int, callback: Callable[[], None]):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: _Timer) -> bool:
        return (self.when, self.seq) < (other.when, other.seq)


class ManualScheduler:
    """Virtual clock. Nothing runs until ``advance`` or ``run_until_idle`` is called."""

    def __init__(self, frame_interval: float = 1 / 60):
        self.frame_interval = frame_interval
        self._now = 0.0
        self._queue: list[_Timer] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(self._now + max(0.0, delay), next(self._seq), callback)
        heapq.heappush(self._queue, timer)
        return timer

    def request_frame(self, callback: Callable[[], None]) -> _Timer:
        return self.call_later(self.frame_interval, callback)

    @property
    def pending(self) -> int:
        return sum(1 for t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every timer that falls due on the way."""
        deadline = self._now + seconds
        while self._queue and self._queue[0].when <= deadline:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = timer.when
            timer.callback()
        self._now = deadline

    def run_until_idle(self, limit: float = 600.0) -> None:
        """Run timers in order until none are left (bounded by ``limit`` virtual seconds)."""
        deadline = self._now + limit
        while self._queue:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            if timer.when > deadline:
                heapq.heappush(self._queue, timer)
                break
            self._now = max(self._now, timer.when)
            timer.callback()


class AsyncioScheduler:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, frame_interval: float = 1 / 60):
        self.loop = loop or asyncio.get_running_loop()
        self.frame_interval = frame_interval

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay), callback)

    def request_frame(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(self.frame_interval, callback)
