"""Storage command dispatcher wired to the handler table."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from ..args import read_probably_quoted, read_word, trim
from ..device import ConsoleTransport, StorageService
from . import commands, transfers
from .context import CommandContext
from .digest import report_md5
from .tree_walker import walk_tree

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Command:
    """Parsed representation of one ``storage`` command line."""

    verb: str
    path: str
    rest_args: str = ""


StorageHandler = Callable[[CommandContext, Command], None]


def _path_only(handler: Callable[[CommandContext, str], None]) -> StorageHandler:
    return lambda ctx, command: handler(ctx, command.path)


def _with_args(handler: Callable[[CommandContext, str, str], None]) -> StorageHandler:
    return lambda ctx, command: handler(ctx, command.path, command.rest_args)


# Verbs are matched exactly; table order is the usage listing order.
DEFAULT_HANDLERS: tuple[tuple[str, StorageHandler], ...] = (
    ("info", _path_only(commands.show_info)),
    ("format", _path_only(commands.format_volume)),
    ("list", _path_only(commands.list_directory)),
    ("tree", _path_only(walk_tree)),
    ("read", _path_only(transfers.read_to_completion)),
    ("read_chunks", _with_args(transfers.read_chunks)),
    ("write", _path_only(transfers.write_until_cancel)),
    ("write_chunk", _with_args(transfers.write_chunk)),
    ("copy", _with_args(commands.copy_path)),
    ("remove", _path_only(commands.remove_path)),
    ("rename", _with_args(commands.rename_path)),
    ("migrate", _with_args(commands.migrate_path)),
    ("mkdir", _path_only(commands.make_directory)),
    ("md5", _path_only(report_md5)),
    ("stat", _path_only(commands.show_stat)),
    ("timestamp", _path_only(commands.show_timestamp)),
)


def parse_command(text: str) -> Command | None:
    """Split ``<verb> <path> [<rest>]``; ``None`` when verb or path is missing."""

    verb, remainder = read_word(trim(text))
    if verb is None:
        return None
    path, remainder = read_probably_quoted(remainder)
    if path is None:
        return None
    return Command(verb=verb, path=path, rest_args=trim(remainder))


class StorageCommandDispatcher:
    """Parse ``storage`` arguments and delegate to the verb handlers."""

    name = "storage"

    def __init__(
        self,
        storage: StorageService,
        console: ConsoleTransport,
        handlers: Mapping[str, StorageHandler] | None = None,
    ) -> None:
        self._storage = storage
        self._console = console
        self._handlers: dict[str, StorageHandler] = dict(
            handlers if handlers is not None else DEFAULT_HANDLERS
        )
        self._last_command: Command | None = None

    @property
    def verbs(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    @property
    def last_command(self) -> Command | None:
        """Return the command parsed by the most recent :meth:`dispatch`."""

        return self._last_command

    def register_handler(self, verb: str, handler: StorageHandler) -> None:
        self._handlers[verb] = handler

    def dispatch(self, text: str) -> None:
        """Parse ``text`` and run the matching handler, or print usage."""

        context = CommandContext(storage=self._storage, console=self._console)
        command = parse_command(text)
        self._last_command = command
        if command is None:
            LOGGER.debug("malformed storage arguments: %r", text)
            context.print_usage()
            return

        handler = self._handlers.get(command.verb)
        if handler is None:
            LOGGER.debug("unknown storage verb %r", command.verb)
            context.print_usage()
            return

        LOGGER.debug("storage %s %s", command.verb, command.path)
        handler(context, command)


__all__ = [
    "Command",
    "DEFAULT_HANDLERS",
    "StorageCommandDispatcher",
    "StorageHandler",
    "parse_command",
]
