"""Tests for the tick clocks and periodic scheduling."""

import asyncio

import pytest

from household_grid.clock import AsyncioClock, PeriodicSchedule, SimulatedClock, ms_to_ticks


class TestMsToTicks:
    """Tests for ms_to_ticks."""

    def test_default_rate(self):
        """Test conversion at 1000 Hz is the identity."""
        assert ms_to_ticks(200, 1000) == 200
        assert ms_to_ticks(10, 1000) == 10

    def test_other_rates_floor(self):
        """Test conversion floors at lower tick rates."""
        assert ms_to_ticks(200, 100) == 20
        assert ms_to_ticks(10, 64) == 0
        assert ms_to_ticks(999, 10) == 9


class TestSimulatedClock:
    """Tests for SimulatedClock."""

    def test_starts_at_start_tick(self):
        """Test the clock starts where it is told to."""
        assert SimulatedClock().now() == 0
        assert SimulatedClock(start_tick=500).now() == 500

    def test_ticks_per_hour_follows_rate(self):
        """Test one simulated hour passes per second of ticks."""
        clock = SimulatedClock(tick_rate_hz=250)
        assert clock.ticks_per_hour == 250
        assert clock.ticks_to_seconds(500) == 2.0

    def test_invalid_rate_raises_error(self):
        """Test a non-positive tick rate is rejected."""
        with pytest.raises(ValueError, match="tick_rate_hz must be positive"):
            SimulatedClock(tick_rate_hz=0)

    @pytest.mark.asyncio
    async def test_advance_moves_time(self, clock):
        """Test advance returns and records the new tick."""
        assert await clock.advance(150) == 150
        assert clock.now() == 150
        assert await clock.advance(0) == 150

    @pytest.mark.asyncio
    async def test_advance_backwards_raises_error(self, clock):
        """Test advancing by a negative amount is rejected."""
        with pytest.raises(ValueError, match="cannot advance a clock backwards"):
            await clock.advance(-1)

    @pytest.mark.asyncio
    async def test_sleepers_wake_at_their_deadline(self, clock):
        """Test a sleeper sees the clock at exactly its deadline."""
        seen = []

        async def sleeper(tick):
            await clock.sleep_until(tick)
            seen.append((tick, clock.now()))

        tasks = [asyncio.create_task(sleeper(t)) for t in (300, 100, 200)]
        await clock.settle()
        assert clock.pending_sleepers == 3

        await clock.advance(250)

        assert seen == [(100, 100), (200, 200)]
        assert clock.pending_sleepers == 1

        await clock.advance(50)
        assert seen[-1] == (300, 300)
        await asyncio.gather(*tasks)

    @pytest.mark.asyncio
    async def test_shared_deadline_wakes_in_registration_order(self, clock):
        """Test sleepers sharing a deadline wake in the order they slept."""
        order = []

        async def sleeper(name):
            await clock.sleep_until(100)
            order.append(name)

        tasks = [asyncio.create_task(sleeper(name)) for name in ("a", "b", "c")]
        await clock.advance(100)

        assert order == ["a", "b", "c"]
        await asyncio.gather(*tasks)

    @pytest.mark.asyncio
    async def test_sleep_until_past_tick_returns(self, clock):
        """Test sleeping until a past tick does not block."""
        await clock.advance(100)
        await asyncio.wait_for(clock.sleep_until(50), timeout=1)
        assert clock.pending_sleepers == 0

    @pytest.mark.asyncio
    async def test_settle_rounds_bound_the_wake_chain(self):
        """Test work after a wake-up finishes only if it fits in settle_rounds steps."""
        clock = SimulatedClock(settle_rounds=5)
        done = []

        async def chain(name, steps):
            await clock.sleep_until(100)
            for _ in range(steps):
                await asyncio.sleep(0)
            done.append((name, clock.now()))

        short = asyncio.create_task(chain("short", 1))
        long = asyncio.create_task(chain("long", 20))

        await clock.advance(150)

        assert done == [("short", 100)]
        assert not long.done()

        await long
        assert done[-1] == ("long", 150)
        await short


class TestAsyncioClock:
    """Tests for AsyncioClock."""

    @pytest.mark.asyncio
    async def test_sleep_until_follows_loop_time(self):
        """Test ticks track the event loop clock."""
        clock = AsyncioClock(tick_rate_hz=1000)
        assert clock.now() == 0

        await clock.sleep_until(30)

        assert clock.now() >= 25

    @pytest.mark.asyncio
    async def test_sleep_until_past_tick_returns(self):
        """Test sleeping until a passed tick returns at once."""
        clock = AsyncioClock(tick_rate_hz=1000)
        clock.now()
        await asyncio.sleep(0.02)

        await asyncio.wait_for(clock.sleep_until(1), timeout=0.5)


class TestPeriodicSchedule:
    """Tests for PeriodicSchedule."""

    def test_invalid_period_raises_error(self, clock):
        """Test a non-positive period is rejected."""
        with pytest.raises(ValueError, match="period_ticks must be positive"):
            PeriodicSchedule(clock, 0)

    @pytest.mark.asyncio
    async def test_deadlines_are_multiples_of_the_period(self):
        """Test the k-th wake-up is start + k * period."""
        clock = SimulatedClock(start_tick=37)
        schedule = PeriodicSchedule(clock, 200)
        wakes = []

        async def loop():
            for _ in range(5):
                wakes.append(await schedule.wait_next())

        task = asyncio.create_task(loop())
        await clock.advance(1000)
        await task

        assert wakes == [237, 437, 637, 837, 1037]

    @pytest.mark.asyncio
    async def test_late_processing_does_not_shift_deadlines(self, clock):
        """Test overrunning a period catches up without drift."""
        schedule = PeriodicSchedule(clock, 200)

        # Processing overran past two deadlines before the first wait
        await clock.advance(450)
        assert await schedule.wait_next() == 200
        assert await schedule.wait_next() == 400

        task = asyncio.create_task(schedule.wait_next())
        await clock.settle()
        assert not task.done()

        await clock.advance(150)
        assert task.done()
        assert task.result() == 600

    @pytest.mark.asyncio
    async def test_explicit_start_tick(self, clock):
        """Test the schedule can be anchored to an explicit tick."""
        schedule = PeriodicSchedule(clock, 100, start_tick=1000)
        task = asyncio.create_task(schedule.wait_next())

        await clock.advance(1099)
        assert not task.done()
        await clock.advance(1)
        assert await task == 1100
