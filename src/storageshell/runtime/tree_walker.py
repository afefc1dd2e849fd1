"""Depth-first directory traversal and the ``tree`` command."""
from __future__ import annotations

import logging
from types import TracebackType
from typing import Iterator

from ..device import DirectoryEntry, StorageDirectory, StorageError, StorageService
from ..paths import VOLUME_ROOTS, PathKind, classify_path, join_path
from .context import CommandContext

LOGGER = logging.getLogger(__name__)


class DirWalk:
    """Pre-order, depth-first cursor over a directory subtree.

    Each open directory level holds one storage handle; a level is closed as
    soon as it is exhausted and every remaining level is closed by
    :meth:`close`. Entry order within a level is whatever the storage
    directory cursor yields.
    """

    def __init__(self, storage: StorageService, *, recursive: bool = True) -> None:
        self._storage = storage
        self.recursive = recursive
        self._stack: list[tuple[str, StorageDirectory]] = []

    def open(self, path: str) -> None:
        """Start walking at ``path``; raises :class:`StorageError` on failure."""

        self.close()
        self._stack.append((path, self._storage.open_dir(path)))

    def read(self) -> tuple[str, DirectoryEntry] | None:
        """Return ``(full_path, entry)`` for the next entry, or ``None`` when done."""

        while self._stack:
            parent, directory = self._stack[-1]
            entry = directory.read()
            if entry is None:
                self._stack.pop()
                directory.close()
                continue
            full_path = join_path(parent, entry.name)
            if entry.is_dir and self.recursive:
                self._stack.append((full_path, self._storage.open_dir(full_path)))
            return full_path, entry
        return None

    def close(self) -> None:
        while self._stack:
            _path, directory = self._stack.pop()
            directory.close()

    def __iter__(self) -> Iterator[tuple[str, DirectoryEntry]]:
        while True:
            item = self.read()
            if item is None:
                return
            yield item

    def __enter__(self) -> "DirWalk":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        self.close()
        return False


def format_entry(name: str, entry: DirectoryEntry) -> str:
    if entry.is_dir:
        return f"\t[D] {name}"
    return f"\t[F] {name} {entry.size}b"


def _walk_one(ctx: CommandContext, path: str) -> None:
    with DirWalk(ctx.storage) as walk:
        try:
            walk.open(path)
        except StorageError as exc:
            ctx.print_error(exc)
            return

        read_done = False
        try:
            for full_path, entry in walk:
                read_done = True
                ctx.print(format_entry(full_path, entry))
        except StorageError as exc:
            ctx.print_error(exc)
            return

        if not read_done:
            ctx.print("\tEmpty")


def walk_tree(ctx: CommandContext, path: str) -> None:
    """Print every entry below ``path``; ``/`` walks each volume root in turn."""

    if classify_path(path).kind is PathKind.ROOT:
        for volume_root in VOLUME_ROOTS:
            _walk_one(ctx, volume_root)
        return
    _walk_one(ctx, path)


__all__ = ["DirWalk", "format_entry", "walk_tree"]
