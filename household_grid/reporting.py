"""Fan-out of simulation observations to the console and telemetry outputs."""

import asyncio
import logging
from concurrent.futures import Executor
from pathlib import Path
from typing import Callable, Optional

from household_grid.models import BatteryObservation, BillObservation, Diagnostic, Observation
from household_grid.runtime import Console
from household_grid.storage import InfluxDBStorage

logger = logging.getLogger(__name__)


class Reporter:
    """
    Delivers every observation to the configured destinations.

    The console line is always written. The optional callback, JSON-lines
    file and InfluxDB storage receive the structured observation.

    When an ``executor`` is given, the file append and the storage write run
    on it through the event loop, so slow telemetry never stalls the tasks.
    The executor should have a single worker to keep the writes in order;
    ``drain()`` waits for everything submitted so far.
    """

    def __init__(
        self,
        console: Console,
        device_id: str = "household-grid-001",
        output_callback: Optional[Callable[[Observation], None]] = None,
        output_file: Optional[Path] = None,
        storage: Optional[InfluxDBStorage] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize the reporter.

        Args:
            console: Print primitive for the textual output
            device_id: Identifier attached to stored telemetry
            output_callback: Optional callback for each observation
            output_file: Optional file path to append JSON lines
            storage: Optional InfluxDB storage
            executor: Optional executor for file and storage writes
        """
        self.console = console
        self.device_id = device_id
        self.output_callback = output_callback
        self.output_file = output_file
        self.storage = storage
        self.executor = executor
        self.emitted = 0
        self._pending: list[asyncio.Future] = []

    def emit(self, observation: Observation) -> None:
        """Output an observation to all configured destinations."""
        self.console.print(observation.console_line())
        self.emitted += 1
        logger.debug("Observation: %s", observation.to_dict())

        if self.output_callback:
            self.output_callback(observation)

        if self.output_file is None and self.storage is None:
            return

        if self.executor is None:
            self._write_outputs(observation)
            return

        loop = asyncio.get_running_loop()
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(loop.run_in_executor(self.executor, self._write_outputs, observation))

    def _write_outputs(self, observation: Observation) -> None:
        if self.output_file:
            try:
                with open(self.output_file, "a") as f:
                    f.write(observation.to_json() + "\n")
            except OSError as e:
                logger.error("Failed to write to %s: %s", self.output_file, e)

        if self.storage is not None:
            self.storage.write(observation, device_id=self.device_id)

    @property
    def pending(self) -> int:
        """Writes submitted to the executor and not yet finished."""
        return sum(1 for f in self._pending if not f.done())

    async def drain(self) -> None:
        """Wait for every submitted write to finish."""
        pending, self._pending = self._pending, []
        await asyncio.gather(*pending)

    def battery_level(self, tick: int, level_wh: int, capacity_wh: int) -> None:
        self.emit(BatteryObservation(tick=tick, level_wh=level_wh, capacity_wh=capacity_wh))

    def bill(self, tick: int, bill: int, delta_wh: int, price: int) -> None:
        self.emit(BillObservation(tick=tick, bill=bill, delta_wh=delta_wh, price=price))

    def diagnostic(self, tick: int, source: str, message: str) -> None:
        self.emit(Diagnostic(tick=tick, source=source, message=message))
