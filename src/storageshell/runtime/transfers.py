"""Chunked transfer protocols that stream file contents over the console."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..args import read_unsigned
from ..device import (
    ETX,
    AccessMode,
    ConsoleClosed,
    FsError,
    OpenMode,
    StorageError,
    StorageFile,
)
from .context import CommandContext

LOGGER = logging.getLogger(__name__)

READ_BUFFER_SIZE = 128
WRITE_BUFFER_SIZE = 512

WRITE_PROMPT = "Just write your text data. New line by Ctrl+Enter, exit by Ctrl+C."


@dataclass
class TransferSession:
    """Line buffer state for one write-until-cancel command."""

    capacity: int = WRITE_BUFFER_SIZE
    buffer: bytearray = field(init=False)
    write_cursor: int = field(init=False, default=0)
    flushed: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError("transfer buffer capacity must be positive")
        self.buffer = bytearray(self.capacity)

    @property
    def bytes_since_flush(self) -> int:
        return self.write_cursor

    @property
    def is_full(self) -> bool:
        return self.write_cursor == self.capacity

    def push(self, symbol: int) -> None:
        """Store ``symbol`` at the cursor; callers flush once :attr:`is_full`."""

        if self.is_full:
            raise OverflowError("transfer buffer must be flushed before reuse")
        self.buffer[self.write_cursor] = symbol
        self.write_cursor += 1

    def pending(self) -> bytes:
        return bytes(self.buffer[: self.write_cursor])

    def mark_flushed(self) -> None:
        self.flushed += self.write_cursor
        self.write_cursor = 0


# Why: open the target and report failures in the console's storage-error format.
def _open(ctx: CommandContext, path: str, access: AccessMode, mode: OpenMode) -> StorageFile | None:
    try:
        return ctx.storage.open_file(path, access, mode)
    except StorageError as exc:
        ctx.print_error(exc)
        return None


# Why: a flush succeeds only when storage accepted every pending byte.
def _flush(ctx: CommandContext, file: StorageFile, session: TransferSession) -> bool:
    payload = session.pending()
    written = file.write(payload)
    session.mark_flushed()
    if written != len(payload):
        LOGGER.warning("%s: flushed %d of %d bytes", file.path, written, len(payload))
        ctx.print_error(file.error)
        return False
    return True


def read_to_completion(ctx: CommandContext, path: str) -> None:
    """Print the file size and then every byte of the file, unattended."""

    file = _open(ctx, path, AccessMode.READ, OpenMode.OPEN_EXISTING)
    if file is None:
        return
    with file:
        ctx.print(f"Size: {file.size()}")
        while True:
            data = file.read(READ_BUFFER_SIZE)
            if not data:
                break
            ctx.emit(data)
        ctx.print()
        if file.error is not FsError.OK:
            ctx.print_error(file.error)


def write_until_cancel(ctx: CommandContext, path: str) -> None:
    """Append console input to ``path`` until the ETX symbol arrives."""

    file = _open(ctx, path, AccessMode.WRITE, OpenMode.OPEN_APPEND)
    if file is None:
        return
    with file:
        ctx.print(WRITE_PROMPT)
        session = TransferSession()
        try:
            while True:
                symbol = ctx.console.getc()
                if symbol == ETX:
                    if session.bytes_since_flush > 0:
                        _flush(ctx, file, session)
                    break

                session.push(symbol)
                ctx.emit(bytes((symbol,)))

                if session.is_full and not _flush(ctx, file, session):
                    break
        except ConsoleClosed:
            # Input vanished mid-session: keep what was typed, then let the
            # session runner see the closed console.
            if session.bytes_since_flush > 0:
                _flush(ctx, file, session)
            raise
        ctx.print()
        LOGGER.info("appended %d bytes to %s", session.flushed, path)


def read_chunks(ctx: CommandContext, path: str, args: str) -> None:
    """Stream ``path`` in caller-sized chunks, one handshake per chunk."""

    chunk_size = read_unsigned(args)
    if chunk_size is None:
        ctx.print_usage()
        return

    file = _open(ctx, path, AccessMode.READ, OpenMode.OPEN_EXISTING)
    if file is None:
        return
    with file:
        remaining = file.size()
        ctx.print(f"Size: {remaining}")

        if chunk_size:
            while remaining > 0:
                ctx.print()
                ctx.print("Ready?")
                ctx.console.getc()

                data = file.read(chunk_size)
                if not data:
                    # Storage stopped short of the reported size.
                    if file.error is not FsError.OK:
                        ctx.print_error(file.error)
                    break
                ctx.emit(data)
                remaining -= len(data)
        ctx.print()


def write_chunk(ctx: CommandContext, path: str, args: str) -> None:
    """Append exactly one caller-sized block read from the console.

    The result check compares the stored byte count with the *requested*
    chunk size, so a short console read is reported even when every byte
    that did arrive was written.
    """

    chunk_size = read_unsigned(args)
    if chunk_size is None:
        ctx.print_usage()
        return

    file = _open(ctx, path, AccessMode.WRITE, OpenMode.OPEN_APPEND)
    if file is None:
        return
    with file:
        ctx.print("Ready")

        if chunk_size:
            data = ctx.console.read(chunk_size)
            written = file.write(data)
            if written != chunk_size:
                LOGGER.warning(
                    "%s: requested %d bytes, received %d, stored %d",
                    path,
                    chunk_size,
                    len(data),
                    written,
                )
                ctx.print_error(file.error)


__all__ = [
    "READ_BUFFER_SIZE",
    "TransferSession",
    "WRITE_BUFFER_SIZE",
    "read_chunks",
    "read_to_completion",
    "write_chunk",
    "write_until_cancel",
]
