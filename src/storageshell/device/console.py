"""Console transports that carry the interactive storage session."""
from __future__ import annotations

import os
import sys
from abc import ABC, abstractmethod
from collections import deque
from typing import IO, Deque

from .errors import ConsoleClosed

ETX = 0x03
BACKSPACE = 0x08
DELETE = 0x7F
CR = 0x0D
LF = 0x0A


def _to_bytes(data: str | bytes) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    return data.encode("latin-1", errors="replace")


class ConsoleTransport(ABC):
    """Strategy object that hides the underlying console stream."""

    #: Whether line input should be echoed back by the session.
    echo_input: bool = True

    def open(self) -> None:
        """Prepare the transport for use."""

        pass

    @abstractmethod
    def getc(self) -> int:
        """Block until one input byte is available and return it."""

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Perform one bounded read of at most ``size`` raw bytes."""

    @abstractmethod
    def write(self, data: str | bytes) -> None:
        """Emit text or raw bytes without buffering."""

    def feed(self, data: str | bytes) -> None:
        """Inject inbound data for transports that emulate a remote terminal."""

        raise NotImplementedError("transport does not support manual inbound data")

    def collect_transmit(self) -> bytes:
        """Expose transmitted payloads for inspection in tests."""

        raise NotImplementedError("transport does not expose transmitted payloads")

    def close(self) -> None:
        """Release any transport resources."""

        pass

    def readline(self) -> str:
        """Read one command line, honouring backspace and echo settings.

        Raises :class:`ConsoleClosed` when input ends before any character of
        the line arrived; a partial line at end of input is returned as is.
        """

        line = bytearray()
        while True:
            try:
                symbol = self.getc()
            except ConsoleClosed:
                if line:
                    return line.decode("latin-1")
                raise
            if symbol in (CR, LF):
                if self.echo_input:
                    self.write("\r\n")
                return line.decode("latin-1")
            if symbol in (BACKSPACE, DELETE):
                if line:
                    line.pop()
                    if self.echo_input:
                        self.write("\b \b")
                continue
            if symbol == ETX:
                line.clear()
                if self.echo_input:
                    self.write("^C\r\n")
                return ""
            line.append(symbol)
            if self.echo_input:
                self.write(bytes((symbol,)))


class LoopbackConsoleTransport(ConsoleTransport):
    """In-memory transport used by tests and scripted sessions."""

    def __init__(self, *, echo_input: bool = False) -> None:
        self.echo_input = echo_input
        self._inbound: Deque[int] = deque()
        self._outbound = bytearray()
        self.reads: list[int] = []
        self.opened = False

    # Buffered traffic survives open and close; scripts feed input up front.
    def open(self) -> None:
        self.opened = True

    def getc(self) -> int:
        if not self._inbound:
            raise ConsoleClosed("console input exhausted")
        return self._inbound.popleft()

    def read(self, size: int) -> bytes:
        self.reads.append(size)
        count = min(size, len(self._inbound))
        return bytes(self._inbound.popleft() for _ in range(count))

    def write(self, data: str | bytes) -> None:
        self._outbound.extend(_to_bytes(data))

    def feed(self, data: str | bytes) -> None:
        self._inbound.extend(_to_bytes(data))

    def collect_transmit(self) -> bytes:
        payload = bytes(self._outbound)
        self._outbound.clear()
        return payload

    @property
    def pending_input(self) -> int:
        return len(self._inbound)

    def close(self) -> None:
        self.opened = False


class StdioConsoleTransport(ConsoleTransport):
    """Transport bound to the process standard streams.

    When standard input is a terminal it is switched to raw mode while the
    transport is open so single keystrokes (including Ctrl+C as ETX) reach
    the session unprocessed.
    """

    def __init__(
        self,
        stdin: IO[bytes] | None = None,
        stdout: IO[bytes] | None = None,
    ) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._fd = self._stdin.fileno()
        self._saved_attrs: list | None = None
        self.echo_input = os.isatty(self._fd)

    def open(self) -> None:
        if not os.isatty(self._fd) or self._saved_attrs is not None:
            return
        try:
            import termios
            import tty
        except ImportError:  # pragma: no cover - non-POSIX hosts keep cooked mode
            return
        self._saved_attrs = termios.tcgetattr(self._fd)
        tty.setraw(self._fd)

    def getc(self) -> int:
        data = os.read(self._fd, 1)
        if not data:
            raise ConsoleClosed("console input closed")
        return data[0]

    def read(self, size: int) -> bytes:
        if size <= 0:
            return b""
        return os.read(self._fd, size)

    def write(self, data: str | bytes) -> None:
        self._stdout.write(_to_bytes(data))
        self._stdout.flush()

    def close(self) -> None:
        if self._saved_attrs is None:
            return
        import termios

        try:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attrs)
        finally:
            self._saved_attrs = None


__all__ = [
    "BACKSPACE",
    "CR",
    "ConsoleTransport",
    "DELETE",
    "ETX",
    "LF",
    "LoopbackConsoleTransport",
    "StdioConsoleTransport",
]
