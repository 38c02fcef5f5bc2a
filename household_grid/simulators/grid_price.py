"""Grid price curve."""

import math

from .base import BaseCurve


class PriceCurve(BaseCurve):
    """
    Grid electricity price as a daily sinusoid around a base price.

    Prices are expressed in price units per Watt-hour and reported as an
    integer in hundredths of that unit, so the default curve moves between
    15 and 29.
    """

    def __init__(
        self,
        base_price: float = 0.22,
        price_amplitude: float = 0.07,
        period_hours: float = 24,
        phase: float = math.pi / 2,
        ticks_per_hour: int = 1000,
    ) -> None:
        """
        Initialize grid price curve.

        Args:
            base_price: Mean price
            price_amplitude: Maximum fluctuation around the base price
            period_hours: Length of a pricing day in simulated hours
            phase: Phase shift in radians
            ticks_per_hour: Scheduler ticks per simulated hour
        """
        super().__init__(period_hours, phase, ticks_per_hour)
        if base_price - abs(price_amplitude) < 0:
            raise ValueError("base_price must be at least price_amplitude")
        self.base_price = base_price
        self.price_amplitude = price_amplitude

    def raw(self, tick: int) -> float:
        """Price at the given tick, before scaling and truncation."""
        return self.base_price + self.price_amplitude * self._wave(tick)

    def __call__(self, tick: int) -> int:
        """Price in hundredths of a price unit, truncated toward zero."""
        return int(self.raw(tick) * 100)
