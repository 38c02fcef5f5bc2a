"""Telemetry storage for grid observations."""

from household_grid.storage.influxdb_client import (
    InfluxDBStorage,
    InfluxDBConfig,
)

__all__ = [
    "InfluxDBStorage",
    "InfluxDBConfig",
]
