"""Solar generation task: the sole producer on the power channel."""

import logging
from typing import NoReturn

from household_grid.channels import BoundedChannel
from household_grid.clock import Clock, PeriodicSchedule
from household_grid.models import PowerSample
from household_grid.simulators import SolarCurve
from .base import BaseWorker

logger = logging.getLogger(__name__)


class GeneratorWorker(BaseWorker):
    """
    Samples the solar curve once per period and offers it to the battery manager.

    The sample is taken at the deadline tick, so the produced sequence
    depends only on the schedule. When the power channel is full the
    sample for that period is dropped.
    """

    name = "SolarGen"
    priority = 1

    def __init__(
        self,
        clock: Clock,
        power_channel: BoundedChannel[PowerSample],
        curve: SolarCurve,
        period_ticks: int,
    ):
        super().__init__(clock)
        self.power_channel = power_channel
        self.curve = curve
        self.period_ticks = period_ticks

    def produce(self, tick: int) -> bool:
        """Sample the curve at ``tick`` and try to send it. Returns whether it was queued."""
        return self.power_channel.try_send(PowerSample(watts=self.curve.sample(tick), tick=tick))

    async def run(self) -> NoReturn:
        schedule = PeriodicSchedule(self.clock, self.period_ticks)
        logger.info("%s started (period=%d ticks)", self.name, self.period_ticks)
        while True:
            tick = await schedule.wait_next()
            self.produce(tick)
