"""Volume prefixes and the path classifier used by every command handler."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


ROOT_PATH = "/"
INT_PATH_PREFIX = "/int"
EXT_PATH_PREFIX = "/ext"
ANY_PATH_PREFIX = "/any"

# Order matters: ``tree /`` walks the internal store before the card.
VOLUME_ROOTS: tuple[str, ...] = (INT_PATH_PREFIX, EXT_PATH_PREFIX)


class PathKind(Enum):
    """Aggregate targets a textual path can name."""

    ROOT = auto()
    INTERNAL = auto()
    EXTERNAL = auto()
    ANY = auto()
    SUB = auto()


_EXACT_KINDS = {
    ROOT_PATH: PathKind.ROOT,
    INT_PATH_PREFIX: PathKind.INTERNAL,
    EXT_PATH_PREFIX: PathKind.EXTERNAL,
    ANY_PATH_PREFIX: PathKind.ANY,
}


@dataclass(frozen=True)
class VolumePath:
    """Classified form of a console path argument."""

    kind: PathKind
    path: str

    @property
    def is_volume(self) -> bool:
        """Return ``True`` for the three volume prefixes themselves."""

        return self.kind in (PathKind.INTERNAL, PathKind.EXTERNAL, PathKind.ANY)


def classify_path(path: str) -> VolumePath:
    """Classify ``path`` by exact comparison against the fixed prefixes.

    No normalisation happens here: ``"/ext/"`` and ``"/EXT"`` are plain
    sub-paths, not the external volume.
    """

    return VolumePath(kind=_EXACT_KINDS.get(path, PathKind.SUB), path=path)


def split_volume(path: str) -> tuple[str, str]:
    """Split ``/int/a/b`` into ``("int", "a/b")``.

    Returns an empty volume name when ``path`` does not start with a
    volume prefix followed by ``/`` or the end of the string.
    """

    for prefix in (INT_PATH_PREFIX, EXT_PATH_PREFIX, ANY_PATH_PREFIX):
        if path == prefix:
            return prefix[1:], ""
        if path.startswith(prefix + "/"):
            return prefix[1:], path[len(prefix) + 1 :].strip("/")
    return "", path


def join_path(parent: str, name: str) -> str:
    """Join a console path and a child name with a single separator."""

    if parent.endswith("/"):
        return parent + name
    return f"{parent}/{name}"


def path_name(path: str) -> str:
    """Return the final component of a console path."""

    return path.rstrip("/").rsplit("/", 1)[-1]


def path_parent(path: str) -> str:
    """Return the parent of a console path (``/`` for top-level entries)."""

    stripped = path.rstrip("/")
    parent, _, _ = stripped.rpartition("/")
    return parent or ROOT_PATH


def is_within(path: str, ancestor: str) -> bool:
    """Return ``True`` when ``path`` equals ``ancestor`` or lies beneath it."""

    ancestor = ancestor.rstrip("/")
    path = path.rstrip("/")
    return path == ancestor or path.startswith(ancestor + "/")


__all__ = [
    "ANY_PATH_PREFIX",
    "EXT_PATH_PREFIX",
    "INT_PATH_PREFIX",
    "PathKind",
    "ROOT_PATH",
    "VOLUME_ROOTS",
    "VolumePath",
    "classify_path",
    "is_within",
    "join_path",
    "path_name",
    "path_parent",
    "split_volume",
]
