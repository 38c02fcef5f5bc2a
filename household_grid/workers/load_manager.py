"""Load management task: powers the appliances from the battery or the grid."""

import logging
from typing import NoReturn, Sequence

from household_grid.battery import BatteryStore, EnergyConversion
from household_grid.channels import BoundedChannel
from household_grid.clock import Clock, PeriodicSchedule
from household_grid.models import Appliance, EnergyDelta
from household_grid.reporting import Reporter
from .base import BaseWorker

logger = logging.getLogger(__name__)


class LoadManagerWorker(BaseWorker):
    """
    Debits the battery for the appliances that are on, once per period.

    The capacity check reads the battery level without the lock. This task
    is the only one that discharges, so a stale read can only understate
    the level; the locked update that follows never goes below zero.
    When the battery cannot cover the load, the energy is bought from the
    grid instead.
    """

    name = "LoadMgmt"
    priority = 3

    def __init__(
        self,
        clock: Clock,
        grid_channel: BoundedChannel[EnergyDelta],
        store: BatteryStore,
        appliances: Sequence[Appliance],
        conversion: EnergyConversion,
        reporter: Reporter,
        period_ticks: int,
    ):
        super().__init__(clock)
        self.grid_channel = grid_channel
        self.store = store
        self.appliances = tuple(appliances)
        self.conversion = conversion
        self.reporter = reporter
        self.period_ticks = period_ticks

        self.bought_wh = 0

    def consumed_power(self) -> int:
        """Total rated power of the appliances that are on, in Watts."""
        return sum(appliance.power_w for appliance in self.appliances if appliance.status)

    async def step(self, tick: int) -> None:
        """Account for one period of appliance consumption."""
        energy = self.conversion(self.consumed_power())

        if self.store.level > energy:
            if await self.store.try_add(-energy) is None:
                self.reporter.diagnostic(tick, self.name, "Could not update battery")
        elif self.grid_channel.try_send(EnergyDelta(wh=-energy, tick=tick, source=self.name)):
            self.bought_wh += energy

    async def run(self) -> NoReturn:
        schedule = PeriodicSchedule(self.clock, self.period_ticks)
        logger.info(
            "%s started (period=%d ticks, appliances on: %s)",
            self.name,
            self.period_ticks,
            ", ".join(a.name for a in self.appliances if a.status) or "none",
        )
        while True:
            tick = await schedule.wait_next()
            await self.step(tick)
