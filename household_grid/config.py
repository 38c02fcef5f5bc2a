"""Configuration management for the household grid simulator."""

import json
import math
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from household_grid.models import Appliance
from household_grid.storage import InfluxDBConfig


@dataclass
class ClockConfig:
    """Scheduler tick configuration."""

    tick_rate_hz: int = 1000  # Also the number of ticks per simulated hour


@dataclass
class SolarConfig:
    """Solar curve configuration."""

    amplitude_w: int = 5000
    period_hours: float = 24.0
    phase: float = math.pi / 2


@dataclass
class PriceConfig:
    """Grid price curve configuration."""

    base_price: float = 0.22
    price_amplitude: float = 0.07
    period_hours: float = 24.0
    phase: float = math.pi / 2


@dataclass
class BatteryConfig:
    """Battery storage configuration."""

    capacity_wh: int = 10000
    lock_timeout_ms: int = 10


@dataclass
class ChannelConfig:
    """Bounded channel capacities."""

    power_capacity: int = 2
    grid_capacity: int = 4


@dataclass
class TaskConfig:
    """Task periods and the power-to-energy conversion factor."""

    generator_period_ms: int = 200
    load_period_ms: int = 200
    time_numerator: int = 20
    time_denominator: int = 100


DEFAULT_APPLIANCES: tuple[Appliance, ...] = (
    Appliance(name="Lighting", power_w=100, status=False, priority=1),  # 10 LEDs at 10 W
    Appliance(name="Refrigerator", power_w=300, status=True, priority=1),
    Appliance(name="Washing Machine", power_w=1000, status=False, priority=2),
)


@dataclass
class SimulationConfig:
    """Main simulation configuration."""

    device_id: str = "household-grid-001"
    output_file: Optional[str] = None

    clock: ClockConfig = field(default_factory=ClockConfig)
    solar: SolarConfig = field(default_factory=SolarConfig)
    price: PriceConfig = field(default_factory=PriceConfig)
    battery: BatteryConfig = field(default_factory=BatteryConfig)
    channels: ChannelConfig = field(default_factory=ChannelConfig)
    tasks: TaskConfig = field(default_factory=TaskConfig)
    appliances: tuple[Appliance, ...] = DEFAULT_APPLIANCES
    influxdb: InfluxDBConfig = field(default_factory=InfluxDBConfig)

    def validate(self) -> None:
        """
        Check the constants the simulation relies on.

        Raises:
            ValueError: If any constant is out of range
        """
        if self.clock.tick_rate_hz <= 0:
            raise ValueError("clock.tick_rate_hz must be positive")
        if self.solar.amplitude_w <= 0:
            raise ValueError("solar.amplitude_w must be positive")
        if self.solar.period_hours <= 0 or self.price.period_hours <= 0:
            raise ValueError("curve period_hours must be positive")
        if self.price.base_price < abs(self.price.price_amplitude):
            raise ValueError("price.base_price must be at least price.price_amplitude")
        if self.battery.capacity_wh <= 0:
            raise ValueError("battery.capacity_wh must be positive")
        if self.battery.lock_timeout_ms < 0:
            raise ValueError("battery.lock_timeout_ms must not be negative")
        if self.channels.power_capacity < 1 or self.channels.grid_capacity < 1:
            raise ValueError("channel capacities must be at least 1")
        if self.tasks.generator_period_ms <= 0 or self.tasks.load_period_ms <= 0:
            raise ValueError("task periods must be positive")
        if self.tasks.time_denominator <= 0:
            raise ValueError("tasks.time_denominator must be positive")
        for appliance in self.appliances:
            if appliance.power_w < 0:
                raise ValueError(f"appliance {appliance.name!r} has negative power")

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationConfig":
        """Create config from dictionary."""
        try:
            appliances = data.get("appliances")
            return cls(
                device_id=data.get("device_id", "household-grid-001"),
                output_file=data.get("output_file"),
                clock=ClockConfig(**data.get("clock", {})),
                solar=SolarConfig(**data.get("solar", {})),
                price=PriceConfig(**data.get("price", {})),
                battery=BatteryConfig(**data.get("battery", {})),
                channels=ChannelConfig(**data.get("channels", {})),
                tasks=TaskConfig(**data.get("tasks", {})),
                appliances=(
                    tuple(Appliance.from_dict(a) for a in appliances)
                    if appliances is not None
                    else DEFAULT_APPLIANCES
                ),
                influxdb=InfluxDBConfig(**data.get("influxdb", {})),
            )
        except (TypeError, KeyError) as e:
            raise ValueError(f"Invalid configuration format: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "SimulationConfig":
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
            return cls.from_dict(data)
        except FileNotFoundError as exc:
            raise FileNotFoundError(
                f"Configuration file not found: {path}",
            ) from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file {path}: {exc}") from exc
        except (OSError, ValueError) as exc:
            # OSError: read problems; ValueError: invalid configuration structure
            raise RuntimeError(
                f"Failed to load configuration from {path}: {exc}",
            ) from exc

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        data = asdict(self)
        data["appliances"] = [a.to_dict() for a in self.appliances]
        # Keep the InfluxDB token out of written files; INFLUXDB_TOKEN supplies it on load
        data["influxdb"].pop("token", None)
        return data

    def to_file(self, path: Path) -> None:
        """Save config to JSON file."""
        try:
            with open(path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as exc:
            raise RuntimeError(
                f"Failed to save configuration to {path}: {exc}",
            ) from exc


# Default configuration template
DEFAULT_CONFIG = SimulationConfig()
