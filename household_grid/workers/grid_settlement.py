"""Grid interaction task: settles energy trades into the bill."""

import logging
from typing import NoReturn

from household_grid.battery import BillWriter
from household_grid.channels import BoundedChannel
from household_grid.clock import Clock
from household_grid.models import EnergyDelta
from household_grid.reporting import Reporter
from household_grid.simulators import PriceCurve
from .base import BaseWorker

logger = logging.getLogger(__name__)


class GridSettlementWorker(BaseWorker):
    """
    Prices each energy delta at the current tick and adds it to the bill.

    The price is the price when the delta is settled, not when it was
    produced.
    """

    name = "GridInteract"
    priority = 4

    def __init__(
        self,
        clock: Clock,
        grid_channel: BoundedChannel[EnergyDelta],
        bill: BillWriter,
        curve: PriceCurve,
        reporter: Reporter,
    ):
        super().__init__(clock)
        self.grid_channel = grid_channel
        self.bill = bill
        self.curve = curve
        self.reporter = reporter

    def settle(self, delta: EnergyDelta) -> int:
        """Add one delta to the bill and return the new total."""
        tick = self.clock.now()
        price = self.curve(tick)
        total = self.bill.add(delta.wh * price)
        self.reporter.bill(tick, total, delta.wh, price)
        return total

    async def run(self) -> NoReturn:
        logger.info("%s started", self.name)
        while True:
            delta = await self.grid_channel.receive()
            self.settle(delta)
