"""Shared test fixtures for the household grid tests."""

import pytest

from household_grid.clock import SimulatedClock
from household_grid.reporting import Reporter
from household_grid.runtime import Console, MemorySink

_INFLUXDB_ENV_VARS = (
    "INFLUXDB_URL",
    "INFLUXDB_TOKEN",
    "INFLUXDB_ORG",
    "INFLUXDB_BUCKET",
)


@pytest.fixture(autouse=True)
def _clean_influxdb_env(monkeypatch):
    """Remove InfluxDB env vars so config defaults are predictable."""
    for var in _INFLUXDB_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def sink():
    """In-memory character sink."""
    return MemorySink()


@pytest.fixture
def console(sink):
    """Console writing to the in-memory sink."""
    return Console(sink)


@pytest.fixture
def reporter(console):
    """Reporter with console output only."""
    return Reporter(console)


@pytest.fixture
def clock():
    """Simulated clock at the default 1000 Hz tick rate."""
    return SimulatedClock(tick_rate_hz=1000)
