"""Storage service contract and its host-directory implementation.

The console core only talks to :class:`StorageService`. Every fallible
primitive raises :class:`StorageError` carrying an :class:`FsError`; open file
handles additionally remember the reason behind a short read or write in
:attr:`StorageFile.error`, the way the device API reports "actual transferred
count" plus a last-error query.

:class:`HostStorage` maps the ``/int`` and ``/ext`` volumes onto host
directories described by :class:`~storageshell.storage_config.StorageConfig`.
"""
from __future__ import annotations

import logging
import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from types import TracebackType
from typing import IO, Iterator

from ..paths import split_volume
from ..storage_config import (
    MAX_NAME_LENGTH,
    StorageConfig,
    StorageConfigError,
    VolumeMapping,
)
from .errors import DeviceError, FsError, StorageError

LOGGER = logging.getLogger(__name__)


class AccessMode(Enum):
    READ = auto()
    WRITE = auto()


class OpenMode(Enum):
    OPEN_EXISTING = auto()
    OPEN_APPEND = auto()


class EntryKind(Enum):
    FILE = auto()
    DIRECTORY = auto()


@dataclass(frozen=True)
class DirectoryEntry:
    """One name yielded by a directory cursor or a ``stat`` call."""

    name: str
    kind: EntryKind
    size: int = 0

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(frozen=True)
class SDInfo:
    """Card description reported by ``info /ext``."""

    label: str
    fs_type: str
    kb_total: int
    kb_free: int
    manufacturer_id: int
    oem_id: str
    product_name: str
    product_revision_major: int
    product_revision_minor: int
    product_serial_number: int
    manufacturing_month: int
    manufacturing_year: int


class StorageFile(ABC):
    """Open file handle owned by exactly one command handler."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.error = FsError.OK
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes; an empty result means end of file or failure."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write ``data`` and return the number of bytes actually stored."""

    @abstractmethod
    def size(self) -> int:
        """Return the current file size in bytes."""

    @abstractmethod
    def seek(self, offset: int) -> bool:
        """Move the cursor to ``offset`` from the start of the file."""

    def close(self) -> None:
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise DeviceError(f"{self.path}: handle already closed")

    def __enter__(self) -> "StorageFile":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        self.close()
        return False


class StorageDirectory(ABC):
    """Open directory cursor owned by exactly one command handler."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._closed = False

    @abstractmethod
    def read(self) -> DirectoryEntry | None:
        """Return the next entry or ``None`` when the directory is exhausted."""

    def close(self) -> None:
        self._closed = True

    def __iter__(self) -> Iterator[DirectoryEntry]:
        while True:
            entry = self.read()
            if entry is None:
                return
            yield entry

    def __enter__(self) -> "StorageDirectory":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        self.close()
        return False


class StorageService(ABC):
    """Primitive filesystem API consumed by the console core."""

    #: Device name shown as the internal volume label; ``None`` when unknown.
    device_name: str | None = None

    @abstractmethod
    def open_file(self, path: str, access: AccessMode, mode: OpenMode) -> StorageFile:
        """Open ``path`` and return a handle the caller must close."""

    @abstractmethod
    def open_dir(self, path: str) -> StorageDirectory:
        """Open a directory cursor at ``path``."""

    @abstractmethod
    def stat(self, path: str) -> DirectoryEntry:
        """Classify ``path`` as file or directory and report its size."""

    def canonical_path(self, path: str) -> str:
        """Return ``path`` with an aliased volume prefix replaced by its target."""

        return path

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
        except StorageError as exc:
            if exc.error is FsError.NOT_EXIST:
                return False
            raise
        return True

    @abstractmethod
    def mkdir(self, path: str) -> None: ...

    @abstractmethod
    def remove(self, path: str) -> None: ...

    @abstractmethod
    def rename(self, old_path: str, new_path: str) -> None: ...

    @abstractmethod
    def copy(self, old_path: str, new_path: str) -> None: ...

    @abstractmethod
    def fs_info(self, path: str) -> tuple[int, int]:
        """Return ``(total_bytes, free_bytes)`` for the volume holding ``path``."""

    @abstractmethod
    def sd_info(self) -> SDInfo: ...

    @abstractmethod
    def sd_format(self) -> None: ...

    @abstractmethod
    def timestamp(self, path: str) -> int:
        """Return the last modification time of ``path`` in epoch seconds."""

    def schedule_factory_reset(self) -> None:
        raise StorageError(FsError.NOT_IMPLEMENTED, "factory reset")


def _error_from_os(exc: OSError) -> FsError:
    if isinstance(exc, FileNotFoundError):
        return FsError.NOT_EXIST
    if isinstance(exc, FileExistsError):
        return FsError.EXIST
    if isinstance(exc, PermissionError):
        return FsError.DENIED
    if isinstance(exc, (IsADirectoryError, NotADirectoryError)):
        return FsError.INVALID_NAME
    return FsError.INTERNAL


def _tree_usage(root: Path) -> int:
    used = 0
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            try:
                used += os.path.getsize(os.path.join(dirpath, filename))
            except OSError:
                continue
    return used


class HostFile(StorageFile):
    """File handle backed by a host file object."""

    def __init__(
        self,
        storage: "HostStorage",
        path: str,
        host_path: Path,
        volume: VolumeMapping,
        handle: IO[bytes],
    ) -> None:
        super().__init__(path)
        self._storage = storage
        self._host_path = host_path
        self._volume = volume
        self._handle = handle

    def read(self, size: int) -> bytes:
        self._ensure_open()
        try:
            return self._handle.read(size)
        except OSError as exc:
            self.error = _error_from_os(exc)
            LOGGER.warning("read failed on %s: %s", self.path, exc)
            return b""

    def write(self, data: bytes) -> int:
        self._ensure_open()
        payload = bytes(data)
        allowance = self._storage._write_allowance(self._volume, len(payload))
        if allowance < len(payload):
            self.error = FsError.INTERNAL
            LOGGER.warning("%s: volume %s is full", self.path, self._volume.name)
            payload = payload[:allowance]
        try:
            written = self._handle.write(payload)
            self._handle.flush()
        except OSError as exc:
            self.error = _error_from_os(exc)
            LOGGER.warning("write failed on %s: %s", self.path, exc)
            return 0
        return written

    def size(self) -> int:
        self._ensure_open()
        return os.fstat(self._handle.fileno()).st_size

    def seek(self, offset: int) -> bool:
        self._ensure_open()
        try:
            self._handle.seek(offset)
        except (OSError, ValueError) as exc:
            self.error = FsError.INVALID_PARAMETER
            LOGGER.warning("seek failed on %s: %s", self.path, exc)
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        try:
            self._handle.close()
        finally:
            super().close()
            self._storage._release(self._host_path, self)


class HostDirectory(StorageDirectory):
    """Directory cursor over a sorted snapshot of a host directory."""

    def __init__(self, storage: "HostStorage", path: str, entries: list[DirectoryEntry]) -> None:
        super().__init__(path)
        self._storage = storage
        self._entries = iter(entries)

    def read(self) -> DirectoryEntry | None:
        if self._closed:
            raise DeviceError(f"{self.path}: directory already closed")
        return next(self._entries, None)

    def close(self) -> None:
        if self._closed:
            return
        super().close()
        self._storage._release(None, self)


class HostStorage(StorageService):
    """Storage service that maps device volumes onto host directories."""

    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        self._open_files: dict[Path, StorageFile] = {}
        self._open_handles: set[object] = set()
        self.factory_reset_pending = False

    @property
    def open_handle_count(self) -> int:
        """Return how many file and directory handles are currently open."""

        return len(self._open_handles)

    @property
    def device_name(self) -> str | None:  # type: ignore[override]
        mapping = self.config.volumes.get("int")
        return mapping.label if mapping is not None else None

    # Resolution -----------------------------------------------------------

    def canonical_path(self, path: str) -> str:
        volume_name, relative = split_volume(path)
        if volume_name != "any":
            return path
        target = "/" + self.config.default_volume()
        return f"{target}/{relative}" if relative else target

    def _resolve(self, path: str) -> tuple[VolumeMapping, Path]:
        volume_name, relative = split_volume(path)
        if not volume_name:
            raise StorageError(FsError.INVALID_NAME, path)
        if volume_name == "any":
            volume_name = self.config.default_volume()
        mapping = self.config.volumes.get(volume_name)
        if mapping is None:
            raise StorageError(FsError.NOT_READY, f"/{volume_name}")
        try:
            return mapping, mapping.resolve_path(relative)
        except StorageConfigError as exc:
            raise StorageError(FsError.INVALID_NAME, str(exc)) from exc

    def _resolve_writable(self, path: str) -> tuple[VolumeMapping, Path]:
        mapping, host_path = self._resolve(path)
        if mapping.read_only:
            raise StorageError(FsError.DENIED, f"/{mapping.name} is read-only")
        return mapping, host_path

    def _write_allowance(self, volume: VolumeMapping, requested: int) -> int:
        if volume.capacity_kib is None:
            return requested
        free = volume.capacity_kib * 1024 - _tree_usage(volume.root)
        return max(0, min(requested, free))

    def _release(self, host_path: Path | None, handle: object) -> None:
        self._open_handles.discard(handle)
        if host_path is not None and self._open_files.get(host_path) is handle:
            del self._open_files[host_path]
        LOGGER.debug("released handle for %s", getattr(handle, "path", host_path))

    # Files and directories --------------------------------------------------

    def open_file(self, path: str, access: AccessMode, mode: OpenMode) -> StorageFile:
        if access is AccessMode.WRITE:
            mapping, host_path = self._resolve_writable(path)
        else:
            mapping, host_path = self._resolve(path)
        if host_path in self._open_files:
            raise StorageError(FsError.ALREADY_OPEN, path)
        if host_path.is_dir():
            raise StorageError(FsError.INVALID_NAME, f"{path} is a directory")

        if mode is OpenMode.OPEN_EXISTING and not host_path.exists():
            raise StorageError(FsError.NOT_EXIST, path)
        if mode is OpenMode.OPEN_APPEND and not host_path.parent.is_dir():
            raise StorageError(FsError.NOT_EXIST, f"parent of {path}")

        if access is AccessMode.READ:
            file_mode = "rb"
        elif mode is OpenMode.OPEN_APPEND:
            file_mode = "ab"
        else:
            file_mode = "r+b"
        try:
            handle = host_path.open(file_mode)
        except OSError as exc:
            raise StorageError(_error_from_os(exc), path) from exc

        storage_file = HostFile(self, path, host_path, mapping, handle)
        self._open_files[host_path] = storage_file
        self._open_handles.add(storage_file)
        LOGGER.debug("opened %s (%s, %s)", path, access.name, mode.name)
        return storage_file

    def open_dir(self, path: str) -> StorageDirectory:
        _mapping, host_path = self._resolve(path)
        if not host_path.exists():
            raise StorageError(FsError.NOT_EXIST, path)
        if not host_path.is_dir():
            raise StorageError(FsError.INVALID_NAME, f"{path} is not a directory")
        try:
            children = sorted(host_path.iterdir(), key=lambda child: child.name)
        except OSError as exc:
            raise StorageError(_error_from_os(exc), path) from exc

        entries: list[DirectoryEntry] = []
        for child in children:
            if child.is_symlink():
                continue
            name = child.name[:MAX_NAME_LENGTH]
            if child.is_dir():
                entries.append(DirectoryEntry(name=name, kind=EntryKind.DIRECTORY))
            else:
                entries.append(
                    DirectoryEntry(name=name, kind=EntryKind.FILE, size=child.stat().st_size)
                )
        directory = HostDirectory(self, path, entries)
        self._open_handles.add(directory)
        LOGGER.debug("opened directory %s (%d entries)", path, len(entries))
        return directory

    def stat(self, path: str) -> DirectoryEntry:
        _mapping, host_path = self._resolve(path)
        try:
            info = host_path.stat()
        except OSError as exc:
            raise StorageError(_error_from_os(exc), path) from exc
        name = host_path.name[:MAX_NAME_LENGTH]
        if host_path.is_dir():
            return DirectoryEntry(name=name, kind=EntryKind.DIRECTORY)
        return DirectoryEntry(name=name, kind=EntryKind.FILE, size=info.st_size)

    def mkdir(self, path: str) -> None:
        _mapping, host_path = self._resolve_writable(path)
        try:
            host_path.mkdir()
        except OSError as exc:
            raise StorageError(_error_from_os(exc), path) from exc
        LOGGER.info("created directory %s", path)

    def remove(self, path: str) -> None:
        mapping, host_path = self._resolve_writable(path)
        if host_path == mapping.root:
            raise StorageError(FsError.DENIED, f"cannot remove volume root {path}")
        if host_path in self._open_files:
            raise StorageError(FsError.ALREADY_OPEN, path)
        try:
            if host_path.is_dir() and not host_path.is_symlink():
                if any(host_path.iterdir()):
                    raise StorageError(FsError.DENIED, f"{path} is not empty")
                host_path.rmdir()
            else:
                host_path.unlink()
        except OSError as exc:
            raise StorageError(_error_from_os(exc), path) from exc
        LOGGER.info("removed %s", path)

    def rename(self, old_path: str, new_path: str) -> None:
        old_mapping, old_host = self._resolve_writable(old_path)
        _new_mapping, new_host = self._resolve_writable(new_path)
        if old_host == old_mapping.root:
            raise StorageError(FsError.DENIED, f"cannot rename volume root {old_path}")
        if not old_host.exists():
            raise StorageError(FsError.NOT_EXIST, old_path)
        if new_host.exists():
            raise StorageError(FsError.EXIST, new_path)
        if not new_host.parent.is_dir():
            raise StorageError(FsError.NOT_EXIST, f"parent of {new_path}")
        if old_host in self._open_files:
            raise StorageError(FsError.ALREADY_OPEN, old_path)
        try:
            shutil.move(str(old_host), str(new_host))
        except OSError as exc:
            raise StorageError(_error_from_os(exc), f"{old_path} -> {new_path}") from exc
        LOGGER.info("renamed %s -> %s", old_path, new_path)

    def copy(self, old_path: str, new_path: str) -> None:
        _old_mapping, old_host = self._resolve(old_path)
        new_mapping, new_host = self._resolve_writable(new_path)
        if not old_host.exists():
            raise StorageError(FsError.NOT_EXIST, old_path)
        if new_host.exists():
            raise StorageError(FsError.EXIST, new_path)
        if not new_host.parent.is_dir():
            raise StorageError(FsError.NOT_EXIST, f"parent of {new_path}")
        required = _tree_usage(old_host) if old_host.is_dir() else old_host.stat().st_size
        if self._write_allowance(new_mapping, required) < required:
            raise StorageError(FsError.INTERNAL, f"not enough space on /{new_mapping.name}")
        try:
            if old_host.is_dir():
                shutil.copytree(old_host, new_host)
            else:
                shutil.copyfile(old_host, new_host)
        except OSError as exc:
            raise StorageError(_error_from_os(exc), f"{old_path} -> {new_path}") from exc
        LOGGER.info("copied %s -> %s", old_path, new_path)

    # Volumes ---------------------------------------------------------------

    def fs_info(self, path: str) -> tuple[int, int]:
        mapping, _host_path = self._resolve(path)
        if mapping.capacity_kib is not None:
            total = mapping.capacity_kib * 1024
            return total, max(0, total - _tree_usage(mapping.root))
        usage = shutil.disk_usage(mapping.root)
        return usage.total, usage.free

    def sd_info(self) -> SDInfo:
        mapping = self.config.volumes.get("ext")
        if mapping is None:
            raise StorageError(FsError.NOT_READY, "/ext")
        total, free = self.fs_info("/ext")
        card = self.config.card
        return SDInfo(
            label=mapping.label,
            fs_type=mapping.fs_type,
            kb_total=total // 1024,
            kb_free=free // 1024,
            manufacturer_id=card.manufacturer_id,
            oem_id=card.oem_id,
            product_name=card.product_name,
            product_revision_major=card.revision_major,
            product_revision_minor=card.revision_minor,
            product_serial_number=card.serial_number,
            manufacturing_month=card.manufacturing_month,
            manufacturing_year=card.manufacturing_year,
        )

    def sd_format(self) -> None:
        mapping = self.config.volumes.get("ext")
        if mapping is None:
            raise StorageError(FsError.NOT_READY, "/ext")
        if mapping.read_only:
            raise StorageError(FsError.DENIED, "/ext is read-only")
        if any(self._volume_of(path) is mapping for path in self._open_files):
            raise StorageError(FsError.ALREADY_OPEN, "/ext has open files")
        self._wipe(mapping)
        LOGGER.info("formatted /ext (%s)", mapping.root)

    def timestamp(self, path: str) -> int:
        _mapping, host_path = self._resolve(path)
        try:
            return int(host_path.stat().st_mtime)
        except OSError as exc:
            raise StorageError(_error_from_os(exc), path) from exc

    # Factory reset ------------------------------------------------------------

    def schedule_factory_reset(self) -> None:
        self.factory_reset_pending = True
        LOGGER.info("factory reset scheduled for next restart")

    def apply_pending_factory_reset(self) -> bool:
        """Wipe the internal volume if a factory reset was requested."""

        if not self.factory_reset_pending:
            return False
        self._wipe(self.config.require_volume("int"))
        self.factory_reset_pending = False
        LOGGER.info("factory reset applied to /int")
        return True

    def _volume_of(self, host_path: Path) -> VolumeMapping | None:
        for mapping in self.config.volumes.values():
            if host_path == mapping.root or mapping.root in host_path.parents:
                return mapping
        return None

    @staticmethod
    def _wipe(mapping: VolumeMapping) -> None:
        for child in mapping.root.iterdir():
            try:
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
            except OSError as exc:
                raise StorageError(_error_from_os(exc), str(child)) from exc


__all__ = [
    "AccessMode",
    "DirectoryEntry",
    "EntryKind",
    "HostDirectory",
    "HostFile",
    "HostStorage",
    "OpenMode",
    "SDInfo",
    "StorageDirectory",
    "StorageFile",
    "StorageService",
]
