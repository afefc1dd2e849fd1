"""Error taxonomy shared by the storage and console collaborators."""
from __future__ import annotations

from enum import Enum


class FsError(Enum):
    """Flat enumeration of filesystem failure reasons."""

    OK = "OK"
    NOT_READY = "filesystem not ready"
    EXIST = "file/dir already exist"
    NOT_EXIST = "file/dir not exist"
    INVALID_PARAMETER = "invalid parameter"
    DENIED = "access denied"
    INVALID_NAME = "invalid name/path"
    INTERNAL = "internal error"
    NOT_IMPLEMENTED = "function not implemented"
    ALREADY_OPEN = "file is already open"

    @property
    def description(self) -> str:
        """Return the human-readable text printed by the console."""

        return self.value


class DeviceError(RuntimeError):
    """Raised when a device or handle is misused."""


class StorageError(DeviceError):
    """Raised by the storage service when a primitive fails."""

    def __init__(self, error: FsError, detail: str | None = None) -> None:
        if error is FsError.OK:
            raise ValueError("StorageError requires a failure reason")
        message = error.description if detail is None else f"{error.description}: {detail}"
        super().__init__(message)
        self.error = error
        self.detail = detail


class ConsoleClosed(EOFError):
    """Raised when the console transport has no more input to offer."""


__all__ = ["ConsoleClosed", "DeviceError", "FsError", "StorageError"]
