"""Tick-driven curves for solar generation and grid price."""

from .solar import SolarCurve
from .grid_price import PriceCurve

__all__ = [
    "PriceCurve",
    "SolarCurve",
]
