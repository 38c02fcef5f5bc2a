"""Bounded FIFO channels between the simulation tasks.

Senders never block: ``try_send`` on a full channel discards the message and
returns False. The bounded capacity is the admission-control policy for the
pipeline. Receivers block on ``receive`` with no timeout.
"""

import asyncio
import logging
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BoundedChannel(Generic[T]):
    """Fixed-capacity FIFO with drop-on-full sends.

    Counters make dropped messages observable:

    - ``sent``: messages accepted by ``try_send``
    - ``dropped``: messages discarded because the channel was full
    - ``received``: messages handed to a receiver
    """

    def __init__(self, name: str, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"{name} channel capacity must be at least 1")
        self.name = name
        self.capacity = capacity
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=capacity)
        self.sent = 0
        self.dropped = 0
        self.received = 0

    def __len__(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()

    def empty(self) -> bool:
        return self._queue.empty()

    def try_send(self, item: T) -> bool:
        """Enqueue ``item`` if there is a free slot.

        Returns:
            True if the item was queued, False if it was dropped
        """
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug("%s channel full, dropped %r", self.name, item)
            return False
        self.sent += 1
        return True

    async def receive(self) -> T:
        """Wait for and return the oldest item."""
        item = await self._queue.get()
        self.received += 1
        return item

    def try_receive(self) -> Optional[T]:
        """Return the oldest item, or None when the channel is empty."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        self.received += 1
        return item
