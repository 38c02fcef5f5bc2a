"""Shared battery level and bill state.

``BatteryStore`` is the only state under mutual exclusion. Every mutation
takes an ``asyncio.Lock`` with a bounded wait and fails closed on timeout.
``BillAccumulator`` is deliberately unlocked; it hands out exactly one
writer handle, so a second writer cannot be introduced by accident.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class InvariantViolation(AssertionError):
    """A battery mutation would leave the level outside [0, capacity]."""


@dataclass(frozen=True)
class EnergyConversion:
    """Fixed-point conversion from power over one task period to energy.

    The default 20/100 corresponds to a 12 minute period: Watts times 0.2 h
    gives Watt-hours.
    """

    numerator: int = 20
    denominator: int = 100

    def __post_init__(self) -> None:
        if self.denominator <= 0:
            raise ValueError("denominator must be positive")
        if self.numerator < 0:
            raise ValueError("numerator must not be negative")

    def __call__(self, power_w: int) -> int:
        return power_w * self.numerator // self.denominator


class BatteryStore:
    """Battery level in Watt-hours, guarded by a lock with a bounded wait.

    ``level`` may be read without the lock; the value can be stale but is
    never torn. Mutations go through ``try_add`` only.

    Attributes:
        capacity_wh: Maximum level
        lock_timeout_s: Longest wait for the lock before giving up
        timeouts: Number of mutations skipped because the lock was busy
        charged_wh: Total energy added
        discharged_wh: Total energy removed
    """

    def __init__(self, capacity_wh: int, lock_timeout_s: float, initial_level_wh: int = 0) -> None:
        if capacity_wh <= 0:
            raise ValueError("capacity_wh must be positive")
        if lock_timeout_s < 0:
            raise ValueError("lock_timeout_s must not be negative")
        if not 0 <= initial_level_wh <= capacity_wh:
            raise ValueError(
                f"initial level must satisfy 0 <= level <= capacity, got {initial_level_wh}"
            )

        self.capacity_wh = capacity_wh
        self.lock_timeout_s = lock_timeout_s
        self._lock = asyncio.Lock()
        self._level = initial_level_wh

        self.timeouts = 0
        self.charged_wh = 0
        self.discharged_wh = 0

    @property
    def level(self) -> int:
        """Current level, read without the lock."""
        return self._level

    async def try_add(self, energy_wh: int) -> Optional[int]:
        """
        Add a signed amount of energy under the lock.

        Args:
            energy_wh: Energy to add (negative to discharge)

        Returns:
            The level after the update, or None if the lock could not be
            acquired within ``lock_timeout_s``

        Raises:
            InvariantViolation: If the update would leave [0, capacity]
        """
        try:
            async with asyncio.timeout(self.lock_timeout_s):
                await self._lock.acquire()
        except TimeoutError:
            self.timeouts += 1
            logger.warning(
                "Battery lock not acquired within %.3fs, skipped update of %d Wh",
                self.lock_timeout_s,
                energy_wh,
            )
            return None

        try:
            new_level = self._level + energy_wh
            if not 0 <= new_level <= self.capacity_wh:
                raise InvariantViolation(
                    f"battery level {new_level} outside [0, {self.capacity_wh}]"
                )
            self._level = new_level
            if energy_wh >= 0:
                self.charged_wh += energy_wh
            else:
                self.discharged_wh -= energy_wh
            return new_level
        finally:
            self._lock.release()


class BillWriter:
    """The single handle allowed to change the bill."""

    def __init__(self, accumulator: "BillAccumulator", owner: str) -> None:
        self._accumulator = accumulator
        self.owner = owner

    def add(self, amount: int) -> int:
        """Add ``amount`` to the bill and return the new total."""
        self._accumulator._total += amount
        return self._accumulator._total


class BillAccumulator:
    """Running signed bill in hundredths of a price unit.

    Not lock-protected. Safety rests on there being a single writer, which
    ``writer()`` enforces by refusing to hand out a second handle.
    """

    def __init__(self) -> None:
        self._total = 0
        self._writer: Optional[BillWriter] = None

    @property
    def total(self) -> int:
        return self._total

    def writer(self, owner: str) -> BillWriter:
        """
        Claim write access to the bill.

        Raises:
            RuntimeError: If another task already owns the bill
        """
        if self._writer is not None:
            raise RuntimeError(
                f"bill already written by {self._writer.owner}; "
                f"{owner} would make it a multi-writer race"
            )
        self._writer = BillWriter(self, owner)
        return self._writer
