"""
Household grid - wires the channels, shared state and tasks together and runs them.

Supports real-time runs on the event loop clock and deterministic
fast-forward runs on a simulated clock.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, NoReturn, Optional

from household_grid.battery import BatteryStore, BillAccumulator, EnergyConversion
from household_grid.channels import BoundedChannel
from household_grid.clock import AsyncioClock, Clock, SimulatedClock, ms_to_ticks
from household_grid.config import SimulationConfig
from household_grid.models import EnergyDelta, GridSummary, Observation, PowerSample
from household_grid.reporting import Reporter
from household_grid.runtime import Console, FatalHalt, SystemHalted
from household_grid.simulators import PriceCurve, SolarCurve
from household_grid.storage import InfluxDBStorage
from household_grid.workers import (
    BatteryManagerWorker,
    GeneratorWorker,
    GridSettlementWorker,
    LoadManagerWorker,
)
from household_grid.workers.base import BaseWorker

logger = logging.getLogger(__name__)


class HouseholdGrid:
    """
    Owns the simulation state and the four tasks.

    Construction creates the power and grid channels, the battery store and
    its lock, the bill, and the workers. ``run`` starts the workers in
    descending priority order and supervises them until the run is stopped,
    its duration elapses, or a fatal condition halts it.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        clock: Optional[Clock] = None,
        console: Optional[Console] = None,
        output_callback: Optional[Callable[[Observation], None]] = None,
        storage: Optional[InfluxDBStorage] = None,
    ):
        """
        Initialize the household grid.

        Args:
            config: Simulation constants; defaults to the built-in ones
            clock: Tick source; defaults to an event loop clock at the configured rate
            console: Print primitive; defaults to stdout
            output_callback: Optional callback for each observation
            storage: Optional InfluxDB storage for observations
        """
        self.config = config or SimulationConfig()
        self.config.validate()

        self.clock = clock or AsyncioClock(self.config.clock.tick_rate_hz)
        self.console = console or Console()
        self.fatal = FatalHalt(self.console, on_halt=lambda _reason: self.stop())

        output_file = Path(self.config.output_file) if self.config.output_file else None
        self._executor: Optional[ThreadPoolExecutor] = None
        if output_file is not None or storage is not None:
            # One worker keeps telemetry writes in emission order
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="telemetry")
        self.reporter = Reporter(
            console=self.console,
            device_id=self.config.device_id,
            output_callback=output_callback,
            output_file=output_file,
            storage=storage,
            executor=self._executor,
        )

        self.power_channel: BoundedChannel[PowerSample] = BoundedChannel(
            "power", self.config.channels.power_capacity
        )
        self.grid_channel: BoundedChannel[EnergyDelta] = BoundedChannel(
            "grid", self.config.channels.grid_capacity
        )

        rate = self.clock.tick_rate_hz
        lock_timeout_ticks = ms_to_ticks(self.config.battery.lock_timeout_ms, rate)
        self.battery = BatteryStore(
            capacity_wh=self.config.battery.capacity_wh,
            lock_timeout_s=self.clock.ticks_to_seconds(lock_timeout_ticks),
        )
        self.bill = BillAccumulator()

        conversion = EnergyConversion(
            self.config.tasks.time_numerator,
            self.config.tasks.time_denominator,
        )
        solar = SolarCurve(
            amplitude_w=self.config.solar.amplitude_w,
            period_hours=self.config.solar.period_hours,
            phase=self.config.solar.phase,
            ticks_per_hour=self.clock.ticks_per_hour,
        )
        price = PriceCurve(
            base_price=self.config.price.base_price,
            price_amplitude=self.config.price.price_amplitude,
            period_hours=self.config.price.period_hours,
            phase=self.config.price.phase,
            ticks_per_hour=self.clock.ticks_per_hour,
        )

        self.generator = GeneratorWorker(
            self.clock,
            self.power_channel,
            solar,
            period_ticks=ms_to_ticks(self.config.tasks.generator_period_ms, rate),
        )
        self.battery_manager = BatteryManagerWorker(
            self.clock,
            self.power_channel,
            self.grid_channel,
            self.battery,
            solar,
            conversion,
            self.reporter,
        )
        self.load_manager = LoadManagerWorker(
            self.clock,
            self.grid_channel,
            self.battery,
            self.config.appliances,
            conversion,
            self.reporter,
            period_ticks=ms_to_ticks(self.config.tasks.load_period_ms, rate),
        )
        self.grid_settlement = GridSettlementWorker(
            self.clock,
            self.grid_channel,
            self.bill.writer(GridSettlementWorker.name),
            price,
            self.reporter,
        )

        self.workers: list[BaseWorker] = [
            self.generator,
            self.battery_manager,
            self.load_manager,
            self.grid_settlement,
        ]
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    async def _supervise(self, worker: BaseWorker) -> NoReturn:
        """Run one worker, turning unrecoverable failures into a fatal halt."""
        try:
            await worker.run()
        except MemoryError:
            self.fatal(f"Malloc failed in {worker.name}")
        except RecursionError:
            self.fatal(f"Stack overflow in {worker.name}")
        except AssertionError as exc:
            self.fatal(f"ASSERT! {worker.name}: {exc}")
        self.fatal(f"Task {worker.name} returned")

    def stop(self) -> None:
        """Request the running simulation to stop."""
        self._stop_event.set()

    async def run(self, duration_ticks: Optional[int] = None) -> GridSummary:
        """
        Run the tasks until stopped, halted, or ``duration_ticks`` have passed.

        Args:
            duration_ticks: Optional run length in ticks. None = run until stopped.

        Returns:
            Summary of the final state

        Raises:
            SystemHalted: If a fatal condition stopped the simulation
        """
        self._stop_event.clear()
        start_tick = self.clock.now()
        ordered = sorted(self.workers, key=lambda w: w.priority, reverse=True)
        self._tasks = [
            asyncio.create_task(self._supervise(worker), name=worker.name) for worker in ordered
        ]
        waiters: list[asyncio.Task] = [asyncio.create_task(self._stop_event.wait())]
        if duration_ticks is not None:
            waiters.append(asyncio.create_task(self.clock.sleep_until(start_tick + duration_ticks)))

        logger.info(
            "Household grid started at tick %d (tasks: %s)",
            start_tick,
            ", ".join(f"{w.name}/{w.priority}" for w in ordered),
        )

        try:
            await asyncio.wait(self._tasks + waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in self._tasks + waiters:
                task.cancel()
            await asyncio.gather(*self._tasks, *waiters, return_exceptions=True)
            await self.reporter.drain()

        if self.fatal.halted:
            raise SystemHalted(self.fatal.reason)
        for task in self._tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()

        summary = self.summary()
        logger.info("Household grid stopped at tick %d", summary.final_tick)
        return summary

    async def run_simulated(self, ticks: int) -> GridSummary:
        """
        Run ``ticks`` of simulated time as fast as the tasks can process it.

        Requires a ``SimulatedClock``; the clock is advanced here.
        """
        if not isinstance(self.clock, SimulatedClock):
            raise TypeError("run_simulated requires a SimulatedClock")
        runner = asyncio.create_task(self.run(duration_ticks=ticks))
        await self.clock.advance(ticks)
        return await runner

    def close(self) -> None:
        """Shut down the telemetry writer; later writes happen inline."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            self.reporter.executor = None

    def summary(self) -> GridSummary:
        """Snapshot of the current state and counters."""
        return GridSummary(
            final_tick=self.clock.now(),
            battery_level_wh=self.battery.level,
            bill=self.bill.total,
            power_sent=self.power_channel.sent,
            power_dropped=self.power_channel.dropped,
            grid_sent=self.grid_channel.sent,
            grid_dropped=self.grid_channel.dropped,
            lock_timeouts=self.battery.timeouts,
            unexpected_samples=self.battery_manager.unexpected_samples,
            halted_reason=self.fatal.reason,
        )
