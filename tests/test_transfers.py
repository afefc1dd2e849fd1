from __future__ import annotations

import math
from pathlib import Path

import pytest

from storageshell.device import (
    ConsoleClosed,
    HostStorage,
    LoopbackConsoleTransport,
)
from storageshell.runtime.context import CommandContext, USAGE_LINES
from storageshell.runtime.transfers import (
    WRITE_BUFFER_SIZE,
    WRITE_PROMPT,
    TransferSession,
    read_chunks,
    read_to_completion,
    write_chunk,
    write_until_cancel,
)
from storageshell.storage_config import StorageConfig, VolumeMapping

ETX = b"\x03"


# Why: payload bytes that never collide with the cancel symbol.
def _payload(length: int) -> bytes:
    return (bytes(range(4, 256)) * (length // 252 + 1))[:length]


def _usage() -> bytes:
    return "".join(line + "\r\n" for line in USAGE_LINES).encode("latin-1")


def _small_volume(tmp_path: Path, capacity_kib: int = 1) -> HostStorage:
    root = tmp_path / "small"
    root.mkdir()
    return HostStorage(
        StorageConfig(
            volumes={
                "int": VolumeMapping(
                    name="int",
                    root=root,
                    label="Small",
                    fs_type="LittleFS",
                    capacity_kib=capacity_kib,
                )
            }
        )
    )


def test_read_prints_size_and_full_content(ctx: CommandContext, console, volumes) -> None:
    internal, _external = volumes
    payload = _payload(300)
    (internal / "data.bin").write_bytes(payload)

    read_to_completion(ctx, "/int/data.bin")

    assert console.collect_transmit() == b"Size: 300\r\n" + payload + b"\r\n"
    assert ctx.storage.open_handle_count == 0


def test_read_missing_file_reports_storage_error(ctx: CommandContext, console) -> None:
    read_to_completion(ctx, "/int/nothing")

    assert console.collect_transmit() == b"Storage error: file/dir not exist\r\n"


@pytest.mark.parametrize(
    "length, chunk_size",
    [(0, 16), (1, 16), (16, 16), (17, 16), (100, 7), (512, 128), (513, 512)],
)
def test_read_chunks_handshakes_once_per_chunk(
    ctx: CommandContext, console: LoopbackConsoleTransport, volumes, length: int, chunk_size: int
) -> None:
    internal, _external = volumes
    payload = _payload(length)
    (internal / "blob").write_bytes(payload)
    handshakes = math.ceil(length / chunk_size)
    console.feed(b"\n" * handshakes)

    read_chunks(ctx, "/int/blob", str(chunk_size))

    chunks = [payload[i : i + chunk_size] for i in range(0, length, chunk_size)]
    expected = (
        f"Size: {length}\r\n".encode()
        + b"".join(b"\r\nReady?\r\n" + chunk for chunk in chunks)
        + b"\r\n"
    )
    assert console.collect_transmit() == expected
    assert console.pending_input == 0
    assert ctx.storage.open_handle_count == 0


def test_read_chunks_zero_size_skips_handshakes(ctx: CommandContext, console, volumes) -> None:
    internal, _external = volumes
    (internal / "blob").write_bytes(b"abc")

    read_chunks(ctx, "/int/blob", "0")

    assert console.collect_transmit() == b"Size: 3\r\n\r\n"


@pytest.mark.parametrize("handler", [read_chunks, write_chunk])
@pytest.mark.parametrize("args", ["", "abc", "-4"])
def test_bad_chunk_size_prints_usage_before_opening(
    ctx: CommandContext, console, volumes, handler, args: str
) -> None:
    internal, _external = volumes

    handler(ctx, "/int/blob", args)

    assert console.collect_transmit() == _usage()
    assert not (internal / "blob").exists()
    assert ctx.storage.open_handle_count == 0


@pytest.mark.parametrize("length", [0, 1, 100, 511, 512, 513, 1024, 1500])
def test_write_until_cancel_round_trip(
    ctx: CommandContext, console: LoopbackConsoleTransport, volumes, length: int
) -> None:
    internal, _external = volumes
    payload = _payload(length)
    console.feed(payload + ETX)

    write_until_cancel(ctx, "/int/typed.txt")

    assert (internal / "typed.txt").read_bytes() == payload
    transcript = console.collect_transmit()
    assert transcript == WRITE_PROMPT.encode() + b"\r\n" + payload + b"\r\n"
    assert ctx.storage.open_handle_count == 0


def test_write_until_cancel_appends_to_existing_file(ctx: CommandContext, console, volumes) -> None:
    internal, _external = volumes
    (internal / "notes").write_bytes(b"first ")
    console.feed(b"second" + ETX)

    write_until_cancel(ctx, "/int/notes")

    assert (internal / "notes").read_bytes() == b"first second"


def test_write_until_cancel_reports_short_final_flush(tmp_path: Path) -> None:
    storage = _small_volume(tmp_path)
    console = LoopbackConsoleTransport()
    ctx = CommandContext(storage=storage, console=console)
    console.feed(_payload(1500) + ETX)

    write_until_cancel(ctx, "/int/big")

    assert (tmp_path / "small" / "big").stat().st_size == 1024
    assert b"Storage error: internal error\r\n" in console.collect_transmit()


def test_write_until_cancel_stops_when_a_full_buffer_cannot_be_stored(tmp_path: Path) -> None:
    storage = _small_volume(tmp_path)
    console = LoopbackConsoleTransport()
    ctx = CommandContext(storage=storage, console=console)
    console.feed(_payload(3 * WRITE_BUFFER_SIZE + 64) + ETX)

    write_until_cancel(ctx, "/int/big")

    # Why: the session ends at the failing flush and leaves the rest unread.
    assert console.pending_input == 64 + 1
    assert (tmp_path / "small" / "big").stat().st_size == 1024
    assert console.collect_transmit().endswith(b"Storage error: internal error\r\n\r\n")


def test_write_until_cancel_keeps_input_when_console_closes(ctx: CommandContext, console, volumes) -> None:
    internal, _external = volumes
    console.feed(b"partial")

    with pytest.raises(ConsoleClosed):
        write_until_cancel(ctx, "/int/partial")

    assert (internal / "partial").read_bytes() == b"partial"
    assert ctx.storage.open_handle_count == 0


def test_write_chunk_stores_exact_block(ctx: CommandContext, console: LoopbackConsoleTransport, volumes) -> None:
    internal, _external = volumes
    console.feed(b"0123456789")

    write_chunk(ctx, "/int/chunk", "10")

    assert console.collect_transmit() == b"Ready\r\n"
    assert console.reads == [10]
    assert (internal / "chunk").read_bytes() == b"0123456789"


def test_write_chunk_flags_short_console_read(ctx: CommandContext, console: LoopbackConsoleTransport, volumes) -> None:
    internal, _external = volumes
    console.feed(b"abc")

    write_chunk(ctx, "/int/chunk", "10")

    # Every received byte was stored, yet the requested size was not met.
    assert console.collect_transmit() == b"Ready\r\nStorage error: OK\r\n"
    assert (internal / "chunk").read_bytes() == b"abc"


def test_write_chunk_zero_size_only_creates_file(ctx: CommandContext, console, volumes) -> None:
    internal, _external = volumes

    write_chunk(ctx, "/int/empty", "0")

    assert console.collect_transmit() == b"Ready\r\n"
    assert console.reads == []
    assert (internal / "empty").read_bytes() == b""


def test_transfer_session_buffer_accounting() -> None:
    session = TransferSession(capacity=2)
    session.push(1)
    assert not session.is_full
    session.push(2)
    assert session.is_full
    with pytest.raises(OverflowError):
        session.push(3)
    assert session.pending() == b"\x01\x02"
    session.mark_flushed()
    assert session.bytes_since_flush == 0
    assert session.flushed == 2
    with pytest.raises(ValueError):
        TransferSession(capacity=0)
