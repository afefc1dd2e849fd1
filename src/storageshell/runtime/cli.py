"""Command-line entry point for the storage console."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from ..device import ConsoleClosed, ConsoleTransport, HostStorage, StdioConsoleTransport
from ..storage_config import (
    VOLUME_NAMES,
    StorageConfig,
    StorageConfigError,
    build_storage_config,
    load_storage_config,
)
from .session_runner import SessionRunner, SessionState

LOGGER = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return parsed arguments for the storage console."""

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--storage-config",
        type=Path,
        default=None,
        help="Path to a TOML file describing the /int and /ext volumes",
    )
    parser.add_argument(
        "--internal",
        type=Path,
        default=None,
        help="Host directory backing /int when no config file is given",
    )
    parser.add_argument(
        "--external",
        type=Path,
        default=None,
        help="Host directory backing /ext (the SD card) when no config file is given",
    )
    parser.add_argument(
        "--any-volume",
        choices=VOLUME_NAMES,
        default="ext",
        help="Volume that /any resolves to (default: ext)",
    )
    parser.add_argument(
        "--log-level",
        choices=_LOG_LEVELS,
        default="WARNING",
        help="Diagnostics written to stderr (default: WARNING)",
    )
    parser.add_argument(
        "command",
        nargs="*",
        help="Run a single command line, e.g. 'storage list /int', and exit",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> StorageConfig:
    """Load the TOML file named by ``args`` or map the bare directories."""

    if args.storage_config is not None:
        return load_storage_config(args.storage_config)
    if args.internal is None:
        raise StorageConfigError("either --storage-config or --internal is required")
    return build_storage_config(
        args.internal, args.external, any_volume=args.any_volume
    )


def _join_command(words: Sequence[str]) -> str:
    # Re-quote words that the shell already split on spaces.
    return " ".join(f'"{word}"' if " " in word else word for word in words)


def run_console(
    storage: HostStorage,
    console: ConsoleTransport,
    command: Sequence[str] = (),
) -> SessionState:
    """Drive one session (or one command) and apply deferred storage work."""

    runner = SessionRunner(storage=storage, console=console)
    console.open()
    try:
        if command:
            try:
                state = runner.process_line(_join_command(command))
            except ConsoleClosed:
                LOGGER.info("console input ended during one-shot command")
                state = SessionState.CLOSED
        else:
            state = runner.run()
    finally:
        console.close()
        if storage.apply_pending_factory_reset():
            LOGGER.warning("internal storage wiped by factory reset")
    return state


def main(
    argv: Sequence[str] | None = None,
    *,
    console: ConsoleTransport | None = None,
) -> int:
    """Entry point for the ``storageshell`` console."""

    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        config = build_config(args)
    except StorageConfigError as exc:
        raise SystemExit(f"storageshell: {exc}") from exc

    storage = HostStorage(config)
    run_console(storage, console or StdioConsoleTransport(), args.command)
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via python -m
    raise SystemExit(main())


__all__ = ["build_config", "main", "parse_args", "run_console"]
