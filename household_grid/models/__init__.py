"""Data models for the household grid."""

from .grid_data import (
    Appliance,
    BatteryObservation,
    BillObservation,
    Diagnostic,
    EnergyDelta,
    GridSummary,
    Observation,
    PowerSample,
)

__all__ = [
    "Appliance",
    "BatteryObservation",
    "BillObservation",
    "Diagnostic",
    "EnergyDelta",
    "GridSummary",
    "Observation",
    "PowerSample",
]
