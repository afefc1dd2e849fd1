"""Per-command collaborator bundle and console output helpers."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from ..device import ConsoleTransport, FsError, StorageError, StorageService

LOGGER = logging.getLogger(__name__)

NEWLINE = "\r\n"

USAGE_LINES: tuple[str, ...] = (
    "Usage:",
    "storage <cmd> <path> <args>",
    "The path must start with /int or /ext",
    "Cmd list:",
    "\tinfo\t - get FS info",
    "\tformat\t - format filesystem",
    "\tlist\t - list files and dirs",
    "\ttree\t - list files and dirs, recursive",
    "\tremove\t - delete the file or directory",
    "\tread\t - read text from file and print file size and content to cli",
    "\tread_chunks\t - read data from file and print file size and content to cli, "
    "<args> should contain how many bytes you want to read in block",
    "\twrite\t - read text from cli and append it to file, stops by ctrl+c",
    "\twrite_chunk\t - read data from cli and append it to file, "
    "<args> should contain how many bytes you want to write",
    "\tcopy\t - copy file to new file, <args> must contain new path",
    "\trename\t - move file to new file, <args> must contain new path",
    "\tmigrate\t - move folder to new path, "
    "renaming already present files by adding numbers to the end",
    "\tmkdir\t - creates a new directory",
    "\tmd5\t - md5 hash of the file",
    "\tstat\t - info about file or dir",
    "\ttimestamp\t - last modification timestamp",
)


@dataclass(frozen=True)
class CommandContext:
    """Collaborators handed to a handler for the lifetime of one command."""

    storage: StorageService
    console: ConsoleTransport

    def print(self, text: str = "") -> None:
        self.console.write(text + NEWLINE)

    def emit(self, data: bytes | str) -> None:
        self.console.write(data)

    def print_usage(self) -> None:
        self.console.write("".join(line + NEWLINE for line in USAGE_LINES))

    def print_error(self, error: FsError | StorageError) -> None:
        if isinstance(error, StorageError):
            LOGGER.warning("storage error: %s", error)
            error = error.error
        self.print(f"Storage error: {error.description}")

    def confirm(self, question: str) -> bool:
        """Ask a yes/no question and read a single-key answer."""

        self.print(f"{question} (y/n)?")
        answer = self.console.getc()
        return answer in (ord("y"), ord("Y"))


__all__ = ["CommandContext", "NEWLINE", "USAGE_LINES"]
