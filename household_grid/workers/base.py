"""Base worker class with common functionality."""

from abc import ABC, abstractmethod
from typing import ClassVar, NoReturn

from household_grid.clock import Clock


class BaseWorker(ABC):
    """Abstract base class for the simulation tasks.

    A worker is an infinite loop that alternates between waiting (on a timer
    or a channel receive) and bounded, non-blocking processing. ``run``
    never returns; the task only ends by cancellation or fatal halt.
    """

    name: ClassVar[str] = "worker"
    priority: ClassVar[int] = 0  # Higher value preempts lower

    def __init__(self, clock: Clock):
        """
        Initialize the worker.

        Args:
            clock: Scheduler clock shared by all tasks
        """
        self.clock = clock

    @abstractmethod
    async def run(self) -> NoReturn:
        """Run the task loop forever."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} priority={self.priority}>"
