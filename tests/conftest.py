"""Pytest configuration and shared fixtures for the storage console tests."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

_SRC = Path(__file__).resolve().parents[1] / "src"
_src_str = str(_SRC)
if _SRC.exists() and _src_str not in sys.path:
    sys.path.insert(0, _src_str)

from storageshell.device import HostStorage, LoopbackConsoleTransport  # noqa: E402
from storageshell.runtime.context import CommandContext  # noqa: E402
from storageshell.storage_config import build_storage_config  # noqa: E402


@pytest.fixture
def volumes(tmp_path: Path) -> tuple[Path, Path]:
    internal = tmp_path / "int"
    external = tmp_path / "ext"
    internal.mkdir()
    external.mkdir()
    return internal, external


@pytest.fixture
def storage(volumes: tuple[Path, Path]) -> HostStorage:
    internal, external = volumes
    return HostStorage(build_storage_config(internal, external))


@pytest.fixture
def console() -> LoopbackConsoleTransport:
    return LoopbackConsoleTransport()


@pytest.fixture
def ctx(storage: HostStorage, console: LoopbackConsoleTransport) -> CommandContext:
    return CommandContext(storage=storage, console=console)
