"""Data models for the household grid: appliances, channel messages and observations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Optional
import json


@dataclass(frozen=True)
class Appliance:
    """A household appliance from the static appliance table."""

    name: str
    power_w: int  # Rated power consumption in Watts
    status: bool  # On or off
    priority: int  # Lower number means higher priority

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "power_w": self.power_w,
            "status": self.status,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Appliance":
        """Create an Appliance from a dictionary."""
        return cls(
            name=data["name"],
            power_w=int(data["power_w"]),
            status=bool(data["status"]),
            priority=int(data.get("priority", 1)),
        )


@dataclass(frozen=True)
class PowerSample:
    """Generated solar power, sent from the generator to the battery manager."""

    watts: int
    tick: int = 0


@dataclass(frozen=True)
class EnergyDelta:
    """Signed settlement request for the grid.

    Positive values are energy sold to the grid, negative values are
    energy bought from it.
    """

    wh: int
    tick: int = 0
    source: str = ""


@dataclass
class Observation(ABC):
    """Base class for everything the simulation reports."""

    kind: ClassVar[str] = "observation"

    tick: int

    def fields(self) -> dict:
        """Numeric/string payload of the observation, without the tick."""
        return {}

    @abstractmethod
    def console_line(self) -> str:
        """Text line written to the character sink."""

    def to_dict(self) -> dict:
        return {"kind": self.kind, "tick": self.tick, **self.fields()}

    def to_json(self, indent: Optional[int] = None) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


@dataclass
class BatteryObservation(Observation):
    """Battery level as seen by the battery manager after one sample."""

    kind: ClassVar[str] = "battery"

    level_wh: int = 0
    capacity_wh: int = 0

    def fields(self) -> dict:
        return {"level_wh": self.level_wh, "capacity_wh": self.capacity_wh}

    def console_line(self) -> str:
        return f"Battery Level: {self.level_wh}"


@dataclass
class BillObservation(Observation):
    """Running bill after one settlement."""

    kind: ClassVar[str] = "bill"

    bill: int = 0  # Hundredths of a price unit
    delta_wh: int = 0
    price: int = 0

    @property
    def display_bill(self) -> int:
        """Bill divided by 100, truncated toward zero."""
        whole = abs(self.bill) // 100
        return whole if self.bill >= 0 else -whole

    def fields(self) -> dict:
        return {"bill": self.bill, "delta_wh": self.delta_wh, "price": self.price}

    def console_line(self) -> str:
        return f"Bill: {self.display_bill}"


@dataclass
class Diagnostic(Observation):
    """Textual diagnostic raised by a task (lock timeout, bad sample)."""

    kind: ClassVar[str] = "diagnostic"

    source: str = ""
    message: str = ""

    def fields(self) -> dict:
        return {"source": self.source, "message": self.message}

    def console_line(self) -> str:
        return self.message


@dataclass
class GridSummary:
    """Snapshot of the grid state at the end of a run."""

    final_tick: int
    battery_level_wh: int
    bill: int
    power_sent: int = 0
    power_dropped: int = 0
    grid_sent: int = 0
    grid_dropped: int = 0
    lock_timeouts: int = 0
    unexpected_samples: int = 0
    halted_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "final_tick": self.final_tick,
            "battery_level_wh": self.battery_level_wh,
            "bill": self.bill,
            "power_sent": self.power_sent,
            "power_dropped": self.power_dropped,
            "grid_sent": self.grid_sent,
            "grid_dropped": self.grid_dropped,
            "lock_timeouts": self.lock_timeouts,
            "unexpected_samples": self.unexpected_samples,
            "halted_reason": self.halted_reason,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
