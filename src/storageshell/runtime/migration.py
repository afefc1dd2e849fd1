"""Subtree migration with collision-suffix renaming."""
from __future__ import annotations

import itertools
import logging
from typing import Iterator

from ..device import DirectoryEntry, FsError, StorageError, StorageService
from ..paths import classify_path, is_within, join_path, path_name, path_parent, split_volume

LOGGER = logging.getLogger(__name__)


def _split_extension(name: str) -> tuple[str, str]:
    index = name.rfind(".")
    if index <= 0:
        return name, ""
    return name[:index], name[index:]


def candidate_names(name: str, *, is_dir: bool) -> Iterator[str]:
    """Yield ``name``, ``name_1``, ``name_2``, ... without end.

    File candidates keep their extension: ``photo.png``, ``photo_1.png``.
    """

    yield name
    stem, extension = (name, "") if is_dir else _split_extension(name)
    for number in itertools.count(1):
        yield f"{stem}_{number}{extension}"


def next_free_path(storage: StorageService, path: str, *, is_dir: bool) -> str:
    """Return the first candidate for ``path`` that does not exist yet."""

    parent = path_parent(path)
    targets = (
        join_path(parent, candidate)
        for candidate in candidate_names(path_name(path), is_dir=is_dir)
    )
    return next(target for target in targets if not storage.exists(target))


class MigrationEngine:
    """Move a subtree to a new location without overwriting anything.

    Partial progress is kept when a primitive fails half way; the failure is
    raised as a single :class:`StorageError`.
    """

    def __init__(self, storage: StorageService) -> None:
        self._storage = storage
        self.moved: list[tuple[str, str]] = []

    @property
    def renamed(self) -> list[tuple[str, str]]:
        """Moves whose destination name differs from the source name."""

        return [(src, dst) for src, dst in self.moved if path_name(src) != path_name(dst)]

    def migrate(self, source: str, destination: str) -> None:
        storage = self._storage
        # Guards compare concrete volumes: /any is an alias, not a third store.
        source = storage.canonical_path(source)
        destination = storage.canonical_path(destination)
        if is_within(destination, source):
            raise StorageError(
                FsError.INVALID_PARAMETER, f"{destination} lies inside {source}"
            )
        if not storage.exists(source):
            LOGGER.info("nothing to migrate at %s", source)
            return

        entry = storage.stat(source)
        if entry.is_dir and self._is_directory(destination):
            LOGGER.info("merging %s into existing %s", source, destination)
            self._merge_children(source, destination)
            if not classify_path(source).is_volume:
                storage.remove(source)
        else:
            target = next_free_path(storage, destination, is_dir=entry.is_dir)
            self._move(source, target, entry)
        LOGGER.info(
            "migrated %s -> %s (%d moves, %d renamed)",
            source,
            destination,
            len(self.moved),
            len(self.renamed),
        )

    def _is_directory(self, path: str) -> bool:
        if not self._storage.exists(path):
            return False
        return self._storage.stat(path).is_dir

    def _list(self, path: str) -> list[DirectoryEntry]:
        # Snapshot first: the directory is mutated while its entries move.
        with self._storage.open_dir(path) as directory:
            return list(directory)

    def _merge_children(self, source_dir: str, target_dir: str) -> None:
        for entry in self._list(source_dir):
            source = join_path(source_dir, entry.name)
            target = next_free_path(
                self._storage, join_path(target_dir, entry.name), is_dir=entry.is_dir
            )
            self._move(source, target, entry)

    def _move(self, source: str, target: str, entry: DirectoryEntry) -> None:
        storage = self._storage
        if split_volume(source)[0] == split_volume(target)[0]:
            storage.rename(source, target)
        elif entry.is_dir:
            storage.mkdir(target)
            self._merge_children(source, target)
            if not classify_path(source).is_volume:
                storage.remove(source)
        else:
            storage.copy(source, target)
            storage.remove(source)
        self.moved.append((source, target))
        LOGGER.debug("moved %s -> %s", source, target)


def migrate(storage: StorageService, source: str, destination: str) -> MigrationEngine:
    """Run one migration and return the engine for inspection."""

    engine = MigrationEngine(storage)
    engine.migrate(source, destination)
    return engine


__all__ = ["MigrationEngine", "candidate_names", "migrate", "next_free_path"]
