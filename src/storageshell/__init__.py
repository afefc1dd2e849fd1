"""Interactive storage console over the /int and /ext volumes."""
from __future__ import annotations

from .device import FsError, HostStorage, StorageError
from .runtime.dispatcher import StorageCommandDispatcher
from .runtime.session_runner import SessionRunner
from .storage_config import StorageConfig, build_storage_config, load_storage_config

__all__ = [
    "FsError",
    "HostStorage",
    "SessionRunner",
    "StorageCommandDispatcher",
    "StorageConfig",
    "StorageError",
    "build_storage_config",
    "load_storage_config",
]
