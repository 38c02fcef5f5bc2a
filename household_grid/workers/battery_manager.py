"""Battery management task: charges the battery from solar or sells the surplus."""

import logging
from typing import NoReturn

from household_grid.battery import BatteryStore, EnergyConversion
from household_grid.channels import BoundedChannel
from household_grid.clock import Clock
from household_grid.models import EnergyDelta, PowerSample
from household_grid.reporting import Reporter
from household_grid.simulators import SolarCurve
from .base import BaseWorker

logger = logging.getLogger(__name__)


class BatteryManagerWorker(BaseWorker):
    """
    Consumes power samples and decides where the energy goes.

    For each sample:

    - in range and room in the battery: add the energy under the lock
    - in range but the battery is at or near capacity: forward the energy
      to the grid as a sale
    - out of range: report an unexpected message

    The battery level is reported after every sample, using the value
    captured by this task rather than a fresh read.
    """

    name = "BatteryMgmt"
    priority = 2

    def __init__(
        self,
        clock: Clock,
        power_channel: BoundedChannel[PowerSample],
        grid_channel: BoundedChannel[EnergyDelta],
        store: BatteryStore,
        curve: SolarCurve,
        conversion: EnergyConversion,
        reporter: Reporter,
    ):
        super().__init__(clock)
        self.power_channel = power_channel
        self.grid_channel = grid_channel
        self.store = store
        self.curve = curve
        self.conversion = conversion
        self.reporter = reporter

        self.unexpected_samples = 0
        self.forwarded_wh = 0

    async def handle(self, sample: PowerSample) -> int:
        """
        Process one power sample.

        Args:
            sample: Sample received from the power channel

        Returns:
            The battery level reported for this sample
        """
        tick = self.clock.now()
        energy = self.conversion(sample.watts)
        in_range = self.curve.in_range(sample.watts)
        local_level = 0

        if in_range and self.store.level + energy < self.store.capacity_wh:
            new_level = await self.store.try_add(energy)
            if new_level is None:
                self.reporter.diagnostic(tick, self.name, "Could not update battery")
            else:
                local_level = new_level
        elif in_range:
            if self.grid_channel.try_send(EnergyDelta(wh=energy, tick=tick, source=self.name)):
                self.forwarded_wh += energy
            local_level = self.store.level
        else:
            self.unexpected_samples += 1
            logger.warning("Out-of-range power sample: %d W", sample.watts)
            self.reporter.diagnostic(tick, self.name, "Unexpected message")

        self.reporter.battery_level(tick, local_level, self.store.capacity_wh)
        return local_level

    async def run(self) -> NoReturn:
        logger.info("%s started", self.name)
        while True:
            sample = await self.power_channel.receive()
            await self.handle(sample)
