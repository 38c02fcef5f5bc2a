"""Tests for the assembled household grid."""

import asyncio
import threading
from unittest.mock import Mock

import pytest

from household_grid.battery import EnergyConversion, InvariantViolation
from household_grid.clock import AsyncioClock, SimulatedClock
from household_grid.config import SimulationConfig
from household_grid.grid import HouseholdGrid
from household_grid.models import BillObservation
from household_grid.runtime import Console, MemorySink, SystemHalted
from household_grid.simulators import SolarCurve
from household_grid.workers.base import BaseWorker

# One simulated day at 1000 Hz, plus half a period so the last deadline is processed
DAY_TICKS = 24_000
RUN_TICKS = DAY_TICKS + 100


class _ReturningWorker(BaseWorker):
    name = "Returner"

    async def run(self):
        return


class _RaisingWorker(BaseWorker):
    name = "Raiser"

    def __init__(self, clock, exc):
        super().__init__(clock)
        self.exc = exc

    async def run(self):
        raise self.exc


class _FailingCurve(SolarCurve):
    def __init__(self, exc):
        super().__init__(ticks_per_hour=1000)
        self.exc = exc

    def sample(self, tick):
        raise self.exc


@pytest.fixture
def grid(clock, console):
    """Grid with default constants on a simulated clock."""
    return HouseholdGrid(config=SimulationConfig(), clock=clock, console=console)


class TestConstruction:
    """Tests for HouseholdGrid construction."""

    def test_channels_and_store(self, grid):
        """Test the channels and battery are built from the config."""
        assert grid.power_channel.capacity == 2
        assert grid.grid_channel.capacity == 4
        assert grid.battery.capacity_wh == 10000
        assert grid.battery.level == 0
        assert grid.battery.lock_timeout_s == pytest.approx(0.01)
        assert grid.bill.total == 0

    def test_periods_in_ticks(self, grid):
        """Test task periods are converted from milliseconds."""
        assert grid.generator.period_ticks == 200
        assert grid.load_manager.period_ticks == 200

    def test_bill_has_a_single_writer(self, grid):
        """Test the settlement task already owns the bill."""
        with pytest.raises(RuntimeError, match="GridInteract"):
            grid.bill.writer("LoadMgmt")

    def test_invalid_config_raises_error(self, clock, console):
        """Test construction validates the config."""
        config = SimulationConfig()
        config.battery.capacity_wh = 0

        with pytest.raises(ValueError, match="battery.capacity_wh must be positive"):
            HouseholdGrid(config=config, clock=clock, console=console)


class TestSimulatedRun:
    """Tests for fast-forward runs on the simulated clock."""

    @pytest.mark.asyncio
    async def test_one_day_keeps_battery_in_bounds(self, clock, sink):
        """Test a full day respects capacity and accounts for every Wh."""
        observations = []
        grid = HouseholdGrid(
            config=SimulationConfig(),
            clock=clock,
            console=Console(sink),
            output_callback=observations.append,
        )

        summary = await grid.run_simulated(RUN_TICKS)

        assert summary.final_tick == RUN_TICKS
        assert 0 <= summary.battery_level_wh <= 10000
        assert summary.lock_timeouts == 0
        assert summary.power_dropped == 0
        assert summary.grid_dropped == 0
        assert summary.halted_reason is None

        battery = grid.battery
        assert battery.level == battery.charged_wh - battery.discharged_wh

        curve = SolarCurve(ticks_per_hour=1000)
        convert = EnergyConversion()
        samples = [curve.sample(t) for t in range(200, DAY_TICKS + 1, 200)]
        in_range_wh = sum(convert(w) for w in samples if curve.in_range(w))
        assert battery.charged_wh + grid.battery_manager.forwarded_wh == in_range_wh

        # 120 periods of the refrigerator's 60 Wh, from the battery or the grid
        assert battery.discharged_wh + grid.load_manager.bought_wh == 120 * 60

        bills = [o for o in observations if isinstance(o, BillObservation)]
        assert len(bills) == summary.grid_sent
        assert sum(o.delta_wh * o.price for o in bills) == summary.bill

    @pytest.mark.asyncio
    async def test_one_day_console_output(self, grid, sink):
        """Test the console shows one battery line per sample and the night diagnostics."""
        summary = await grid.run_simulated(RUN_TICKS)
        lines = sink.lines()

        assert summary.power_sent == 120
        assert sum(line.startswith("Battery Level: ") for line in lines) == 120
        assert lines.count("Unexpected message") == summary.unexpected_samples == 59
        assert sum(line.startswith("Bill: ") for line in lines) == summary.grid_sent
        assert not any(line.startswith("FATAL") for line in lines)

    @pytest.mark.asyncio
    async def test_sells_surplus_around_noon(self, grid):
        """Test a sunny day fills the battery and sells the rest."""
        summary = await grid.run_simulated(RUN_TICKS)

        assert grid.battery_manager.forwarded_wh > 0
        assert summary.bill > 0

    @pytest.mark.asyncio
    async def test_runs_are_deterministic(self):
        """Test two runs from the same start produce identical output."""
        outputs = []
        for _ in range(2):
            sink = MemorySink()
            grid = HouseholdGrid(clock=SimulatedClock(), console=Console(sink))
            summary = await grid.run_simulated(5_100)
            outputs.append((sink.getvalue(), summary.to_dict()))

        assert outputs[0] == outputs[1]

    @pytest.mark.asyncio
    async def test_tasks_start_in_priority_order(self, grid):
        """Test the highest priority task is started first."""
        await grid.run_simulated(300)

        assert [task.get_name() for task in grid._tasks] == [
            "GridInteract",
            "LoadMgmt",
            "BatteryMgmt",
            "SolarGen",
        ]
        assert all(task.done() for task in grid._tasks)

    @pytest.mark.asyncio
    async def test_storage_receives_every_observation(self, clock, console):
        """Test telemetry storage sees what the console sees."""
        storage = Mock()
        grid = HouseholdGrid(clock=clock, console=console, storage=storage)

        await grid.run_simulated(1_100)

        assert storage.write.call_count == grid.reporter.emitted

    @pytest.mark.asyncio
    async def test_slow_storage_does_not_stall_tasks(self, clock, console, sink):
        """Test telemetry writes run off the event loop and are drained at the end."""
        release = threading.Event()
        storage = Mock()
        storage.write.side_effect = lambda *args, **kwargs: release.wait(5)
        grid = HouseholdGrid(clock=clock, console=console, storage=storage)
        runner = asyncio.create_task(grid.run())

        await clock.advance(1_100)

        assert sum(line.startswith("Battery Level: ") for line in sink.lines()) == 5
        assert grid.reporter.pending > 0

        release.set()
        grid.stop()
        await runner
        grid.close()

        assert grid.reporter.pending == 0
        assert storage.write.call_count == grid.reporter.emitted

    @pytest.mark.asyncio
    async def test_deadline_work_finishes_within_settle(self, grid, clock, sink):
        """Test nothing is left runnable once the clock has settled a deadline."""
        runner = asyncio.create_task(grid.run())

        await clock.advance(200)
        lines = sink.lines()
        emitted = grid.reporter.emitted
        for _ in range(clock.settle_rounds):
            await asyncio.sleep(0)

        assert emitted == 3
        assert sorted(lines) == ["Battery Level: 0", "Bill: -9", "Unexpected message"]
        assert sink.lines() == lines
        assert grid.reporter.emitted == emitted
        assert grid.power_channel.empty()
        assert grid.grid_channel.empty()

        grid.stop()
        await runner

    @pytest.mark.asyncio
    async def test_stop_ends_open_ended_run(self, grid, clock):
        """Test stop() ends a run without a duration."""
        runner = asyncio.create_task(grid.run())

        await clock.advance(1_100)
        grid.stop()
        summary = await runner

        assert summary.final_tick == 1_100
        assert summary.power_sent == 5

    @pytest.mark.asyncio
    async def test_run_simulated_requires_simulated_clock(self, console):
        """Test fast-forward refuses a wall clock."""
        grid = HouseholdGrid(clock=AsyncioClock(), console=console)

        with pytest.raises(TypeError, match="requires a SimulatedClock"):
            await grid.run_simulated(100)


class TestFatalHalt:
    """Tests for fatal conditions in the running grid."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc, reason",
        [
            (MemoryError(), "Malloc failed in Raiser"),
            (RecursionError("maximum recursion depth exceeded"), "Stack overflow in Raiser"),
            (
                InvariantViolation("battery level -5 outside [0, 10000]"),
                "ASSERT! Raiser: battery level -5 outside [0, 10000]",
            ),
        ],
    )
    async def test_supervisor_maps_failures(self, grid, clock, sink, exc, reason):
        """Test each unrecoverable failure becomes a fatal halt."""
        with pytest.raises(SystemHalted) as exc_info:
            await grid._supervise(_RaisingWorker(clock, exc))

        assert exc_info.value.reason == reason
        assert sink.lines() == [f"FATAL: {reason}"]
        assert grid._stop_event.is_set()

    @pytest.mark.asyncio
    async def test_returning_task_is_fatal(self, grid, clock, sink):
        """Test a task loop that returns halts the system."""
        with pytest.raises(SystemHalted, match="Task Returner returned"):
            await grid._supervise(_ReturningWorker(clock))

        assert sink.lines() == ["FATAL: Task Returner returned"]

    @pytest.mark.asyncio
    async def test_stack_overflow_halts_run(self, grid, sink):
        """Test a failing task stops every task and reports the halt."""
        grid.generator.curve = _FailingCurve(RecursionError("maximum recursion depth exceeded"))

        with pytest.raises(SystemHalted, match="Stack overflow in SolarGen"):
            await grid.run_simulated(1_100)

        assert sink.lines().count("FATAL: Stack overflow in SolarGen") == 1
        assert grid.fatal.reason == "Stack overflow in SolarGen"
        assert grid.summary().halted_reason == "Stack overflow in SolarGen"
        assert all(task.done() for task in grid._tasks)
        assert grid.power_channel.sent == 0

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, grid):
        """Test ordinary exceptions are not turned into a halt."""
        grid.generator.curve = _FailingCurve(ValueError("bad sample"))

        with pytest.raises(ValueError, match="bad sample"):
            await grid.run_simulated(1_100)

        assert not grid.fatal.halted


class TestRealtimeRun:
    """Tests for runs on the event loop clock."""

    @pytest.mark.asyncio
    async def test_short_realtime_run(self, console, sink):
        """Test a short wall-clock run produces the early-morning samples."""
        grid = HouseholdGrid(console=console)

        summary = await grid.run(duration_ticks=450)

        assert summary.power_sent == 2
        assert sink.lines().count("Unexpected message") == 2
        assert summary.halted_reason is None
