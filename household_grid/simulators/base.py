"""Base curve class with the shared sinusoid."""

from abc import ABC, abstractmethod
import math


class BaseCurve(ABC):
    """Abstract base class for the tick-driven curves.

    A curve is a pure function of the scheduler tick. Time is scaled so that
    ``ticks_per_hour`` ticks make one simulated hour.
    """

    def __init__(self, period_hours: float, phase: float, ticks_per_hour: int):
        """
        Initialize the curve.

        Args:
            period_hours: Length of one full cycle in simulated hours
            phase: Phase shift in radians, subtracted from the angle
            ticks_per_hour: Scheduler ticks per simulated hour
        """
        if period_hours <= 0:
            raise ValueError("period_hours must be positive")
        if ticks_per_hour <= 0:
            raise ValueError("ticks_per_hour must be positive")

        self.period_hours = period_hours
        self.phase = phase
        self.ticks_per_hour = ticks_per_hour

    @property
    def period_ticks(self) -> float:
        """Length of one cycle in ticks."""
        return self.period_hours * self.ticks_per_hour

    def _wave(self, tick: int) -> float:
        """Unit sinusoid evaluated at the given tick."""
        return math.sin(2 * math.pi / self.period_hours * tick / self.ticks_per_hour - self.phase)

    @abstractmethod
    def __call__(self, tick: int):
        """
        Evaluate the curve at the given tick.

        Args:
            tick: Scheduler tick

        Returns:
            Curve value appropriate for this curve
        """
        pass
