"""The four simulation tasks."""

from .generator import GeneratorWorker
from .battery_manager import BatteryManagerWorker
from .load_manager import LoadManagerWorker
from .grid_settlement import GridSettlementWorker

__all__ = [
    "BatteryManagerWorker",
    "GeneratorWorker",
    "GridSettlementWorker",
    "LoadManagerWorker",
]
