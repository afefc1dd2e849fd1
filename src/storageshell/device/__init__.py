"""Device abstractions surfaced by the storageshell package."""
from __future__ import annotations

from typing import Any

from . import console as _console
from . import errors as _errors
from . import storage as _storage

__all__ = list(_errors.__all__) + list(_console.__all__) + list(_storage.__all__)
for _module in (_errors, _console, _storage):
    for _name in _module.__all__:
        globals()[_name] = getattr(_module, _name)


def __getattr__(name: str) -> Any:
    for module in (_errors, _console, _storage):
        if hasattr(module, name):
            return getattr(module, name)
    raise AttributeError(name)


def __dir__() -> list[str]:
    return sorted(__all__)
