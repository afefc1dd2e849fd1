"""Runtime modules exposed by the storageshell package."""
from __future__ import annotations

from typing import Any

from . import cli as _cli
from . import commands as _commands
from . import context as _context
from . import digest as _digest
from . import dispatcher as _dispatcher
from . import migration as _migration
from . import session_runner as _session_runner
from . import transfers as _transfers
from . import tree_walker as _tree_walker

_modules = [
    _cli,
    _commands,
    _context,
    _digest,
    _dispatcher,
    _migration,
    _session_runner,
    _transfers,
    _tree_walker,
]

__all__: list[str] = []
for _module in _modules:
    for _name in getattr(_module, "__all__", ()):
        globals()[_name] = getattr(_module, _name)
        if _name not in __all__:
            __all__.append(_name)


def __getattr__(name: str) -> Any:
    for module in _modules:
        if hasattr(module, name):
            return getattr(module, name)
    raise AttributeError(name)
