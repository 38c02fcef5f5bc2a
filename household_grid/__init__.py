"""
Household Grid - Concurrent simulation of a small household energy grid

This package simulates:
- Solar generation on a daily curve
- A capacity-bounded battery shared under a lock
- Appliance consumption
- Settlement of surplus and deficit with the grid at a time-varying price

Four asyncio tasks exchange messages through two bounded, drop-on-full
channels. Observations can be stored in InfluxDB.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
