"""Solar generation curve."""

import math

from .base import BaseCurve


class SolarCurve(BaseCurve):
    """
    Solar panel output as a daily sinusoid.

    With the default phase of a quarter period the output is lowest at
    tick 0, crosses zero a quarter period in, and peaks at ``amplitude_w``
    at midday. It is negative during the night half of the cycle. The curve itself is not clipped; negative
    values are rejected by the battery manager as out-of-range samples.
    """

    def __init__(
        self,
        amplitude_w: int = 5000,
        period_hours: float = 24,
        phase: float = math.pi / 2,
        ticks_per_hour: int = 1000,
    ):
        """
        Initialize solar curve.

        Args:
            amplitude_w: Peak panel output in Watts
            period_hours: Length of a solar day in simulated hours
            phase: Phase shift in radians
            ticks_per_hour: Scheduler ticks per simulated hour
        """
        super().__init__(period_hours, phase, ticks_per_hour)
        if amplitude_w <= 0:
            raise ValueError("amplitude_w must be positive")
        self.amplitude_w = amplitude_w

    def __call__(self, tick: int) -> float:
        """Solar power in Watts at the given tick."""
        return self.amplitude_w * self._wave(tick)

    def sample(self, tick: int) -> int:
        """Solar power truncated toward zero, as carried on the power channel."""
        return int(self(tick))

    def in_range(self, watts: int) -> bool:
        """Check a received sample against the valid range [0, amplitude]."""
        return 0 <= watts <= self.amplitude_w
