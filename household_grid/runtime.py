"""Runtime primitives the core depends on: character output and fatal halt."""

import logging
import sys
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, NoReturn, Optional

logger = logging.getLogger(__name__)


class CharacterSink(ABC):
    """Blocking byte sink for diagnostic output."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write ``data`` and return the number of bytes written."""


class StreamSink(CharacterSink):
    """Sink writing to a binary stream, flushed after every write."""

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self._stream = stream if stream is not None else sys.stdout.buffer

    def write(self, data: bytes) -> int:
        written = self._stream.write(data)
        self._stream.flush()
        return len(data) if written is None else written


class MemorySink(CharacterSink):
    """Sink that keeps everything written to it in memory."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write(self, data: bytes) -> int:
        self._buffer.extend(data)
        return len(data)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def lines(self) -> list[str]:
        """Decoded output split into lines."""
        return self._buffer.decode("utf-8").splitlines()


class Console:
    """Line-oriented print primitive on top of a character sink."""

    def __init__(self, sink: Optional[CharacterSink] = None) -> None:
        self.sink = sink if sink is not None else StreamSink()

    def print(self, text: str) -> int:
        return self.sink.write((text + "\n").encode("utf-8"))


class SystemHalted(Exception):
    """Raised by the fatal halt; the system makes no further progress."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class FatalHalt:
    """Fail-stop capability injected into the core.

    Calling the instance emits a final ``FATAL:`` line on the console, records
    the first reason, notifies ``on_halt`` once, and raises ``SystemHalted``.
    Later calls re-raise without printing again.
    """

    def __init__(
        self,
        console: Console,
        on_halt: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.console = console
        self.on_halt = on_halt
        self.reason: Optional[str] = None

    @property
    def halted(self) -> bool:
        return self.reason is not None

    def __call__(self, reason: str) -> NoReturn:
        if self.reason is None:
            self.reason = reason
            self.console.print(f"FATAL: {reason}")
            logger.critical("Fatal halt: %s", reason)
            if self.on_halt is not None:
                self.on_halt(reason)
        raise SystemHalted(self.reason)
