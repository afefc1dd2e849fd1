"""Console session loop that routes top-level commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable

from ..args import read_word, trim
from ..device import ConsoleClosed, ConsoleTransport, StorageError, StorageService
from .context import CommandContext
from .dispatcher import StorageCommandDispatcher

LOGGER = logging.getLogger(__name__)

PROMPT = ">: "


class SessionState(Enum):
    RUNNING = auto()
    CLOSED = auto()
    REBOOT = auto()


TopLevelHandler = Callable[[CommandContext, str], "SessionState | None"]


@dataclass(slots=True)
class SessionRunner:
    """Read command lines from the console and dispatch them until it closes.

    Handlers return ``None`` to keep the session alive or a terminal
    :class:`SessionState` to end it.
    """

    storage: StorageService
    console: ConsoleTransport
    prompt: str = PROMPT

    state: SessionState = field(init=False, default=SessionState.RUNNING)
    dispatcher: StorageCommandDispatcher = field(init=False)
    _commands: dict[str, TopLevelHandler] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.dispatcher = StorageCommandDispatcher(self.storage, self.console)
        self._commands = {
            "storage": self._storage_command,
            "factory_reset": self._factory_reset_command,
            "help": self._help_command,
        }

    @property
    def command_names(self) -> tuple[str, ...]:
        return tuple(self._commands)

    def register_command(self, name: str, handler: TopLevelHandler) -> None:
        self._commands[name] = handler

    def _context(self) -> CommandContext:
        return CommandContext(storage=self.storage, console=self.console)

    def process_line(self, line: str) -> SessionState:
        """Run one command line and return the resulting session state."""

        name, args = read_word(trim(line))
        if name is None:
            return self.state

        ctx = self._context()
        handler = self._commands.get(name)
        if handler is None:
            LOGGER.debug("unknown command %r", name)
            ctx.print("Command not found")
            return self.state

        outcome = handler(ctx, args)
        if outcome is not None:
            self.state = outcome
        return self.state

    def run(self) -> SessionState:
        """Prompt, read and dispatch lines until the session ends."""

        LOGGER.info("session started")
        while self.state is SessionState.RUNNING:
            self.console.write(self.prompt)
            try:
                line = self.console.readline()
                self.process_line(line)
            except ConsoleClosed:
                self.state = SessionState.CLOSED
        self.console.write("\r\n")
        LOGGER.info("session ended (%s)", self.state.name.lower())
        return self.state

    # Top-level commands -------------------------------------------------------

    def _storage_command(self, ctx: CommandContext, args: str) -> None:
        self.dispatcher.dispatch(args)

    def _factory_reset_command(self, ctx: CommandContext, args: str) -> SessionState | None:
        if not ctx.confirm("All data will be lost! Are you sure"):
            ctx.print("Safe choice.")
            return None
        try:
            ctx.storage.schedule_factory_reset()
        except StorageError as exc:
            ctx.print_error(exc)
            return None
        ctx.print("Data will be wiped after reboot.")
        return SessionState.REBOOT

    def _help_command(self, ctx: CommandContext, args: str) -> None:
        ctx.print("Commands available:")
        for name in sorted(self._commands):
            ctx.print(f"\t{name}")


__all__ = ["PROMPT", "SessionRunner", "SessionState", "TopLevelHandler"]
