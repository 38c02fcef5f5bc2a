"""Scheduler tick clock and absolute-deadline periodic scheduling.

The simulation runs on an integer tick counter. Two clocks are provided:

- ``AsyncioClock`` derives ticks from the event loop's monotonic time at a
  fixed tick rate.
- ``SimulatedClock`` only moves when ``advance()`` is awaited, which makes
  runs deterministic and lets tests step time explicitly.

Periodic tasks use ``PeriodicSchedule``, which computes each deadline from
the previous deadline rather than from the wake-up time.
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Optional


def ms_to_ticks(ms: int, tick_rate_hz: int) -> int:
    """Convert milliseconds to scheduler ticks at the given tick rate."""
    return ms * tick_rate_hz // 1000


class Clock(ABC):
    """Abstract monotonic tick counter."""

    def __init__(self, tick_rate_hz: int = 1000):
        if tick_rate_hz <= 0:
            raise ValueError("tick_rate_hz must be positive")
        self.tick_rate_hz = tick_rate_hz

    @property
    def ticks_per_hour(self) -> int:
        """Ticks per simulated hour; one simulated hour passes per second."""
        return self.tick_rate_hz

    def ticks_to_seconds(self, ticks: int) -> float:
        return ticks / self.tick_rate_hz

    @abstractmethod
    def now(self) -> int:
        """Current tick."""

    @abstractmethod
    async def sleep_until(self, tick: int) -> None:
        """Suspend until the clock reaches ``tick``; return at once if it already has."""


class AsyncioClock(Clock):
    """Tick counter backed by the running event loop's monotonic time."""

    def __init__(self, tick_rate_hz: int = 1000):
        super().__init__(tick_rate_hz)
        self._origin: Optional[float] = None

    def _elapsed(self) -> float:
        loop_time = asyncio.get_running_loop().time()
        if self._origin is None:
            self._origin = loop_time
        return loop_time - self._origin

    def now(self) -> int:
        return int(self._elapsed() * self.tick_rate_hz)

    async def sleep_until(self, tick: int) -> None:
        delay = self.ticks_to_seconds(tick) - self._elapsed()
        await asyncio.sleep(max(delay, 0))


class SimulatedClock(Clock):
    """Manually advanced tick counter.

    Sleepers are kept in a heap ordered by deadline and registration order,
    so tasks sharing a deadline wake in the order they went to sleep. After
    each batch of wake-ups the clock yields to the event loop
    ``settle_rounds`` times so the woken tasks, and anything they unblock
    through channels, finish processing before time moves on.

    Each yield lets every runnable task take one step. The longest chain in
    the grid is a periodic task waking, its channel send waking a consumer,
    and the consumer reporting and blocking again: three or four steps.
    Work that needs more steps than ``settle_rounds`` is not finished when
    time advances, and nothing reports it. Code that adds awaits to that
    chain, such as an awaiting output callback, must raise the bound.
    """

    def __init__(self, tick_rate_hz: int = 1000, start_tick: int = 0, settle_rounds: int = 25):
        super().__init__(tick_rate_hz)
        self._now = start_tick
        self.settle_rounds = settle_rounds
        self._sleepers: list[tuple[int, int, asyncio.Future]] = []
        self._sequence = itertools.count()

    def now(self) -> int:
        return self._now

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, _, future in self._sleepers if not future.done())

    async def sleep_until(self, tick: int) -> None:
        if tick <= self._now:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (tick, next(self._sequence), future))
        await future

    async def settle(self) -> None:
        """Let every runnable task run until it blocks again."""
        for _ in range(self.settle_rounds):
            await asyncio.sleep(0)

    async def advance(self, ticks: int) -> int:
        """
        Move time forward by ``ticks``, waking sleepers deadline by deadline.

        Args:
            ticks: Number of ticks to advance; must not be negative

        Returns:
            The new current tick
        """
        if ticks < 0:
            raise ValueError("cannot advance a clock backwards")
        return await self.advance_to(self._now + ticks)

    async def advance_to(self, target: int) -> int:
        """Move time forward to the absolute tick ``target``."""
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline = self._sleepers[0][0]
            self._now = deadline
            while self._sleepers and self._sleepers[0][0] == deadline:
                _, _, future = heapq.heappop(self._sleepers)
                if not future.done():
                    future.set_result(None)
            await self.settle()
        self._now = max(self._now, target)
        return self._now


class PeriodicSchedule:
    """Drift-free periodic wake-ups.

    Each deadline is the previous deadline plus the period, so time spent
    processing between waits never shifts later deadlines. If a deadline
    has already passed when ``wait_next`` is called, it returns immediately.
    """

    def __init__(self, clock: Clock, period_ticks: int, start_tick: Optional[int] = None):
        if period_ticks <= 0:
            raise ValueError("period_ticks must be positive")
        self.clock = clock
        self.period_ticks = period_ticks
        self.next_wake = clock.now() if start_tick is None else start_tick

    async def wait_next(self) -> int:
        """Sleep until the next deadline and return it."""
        self.next_wake += self.period_ticks
        await self.clock.sleep_until(self.next_wake)
        return self.next_wake
