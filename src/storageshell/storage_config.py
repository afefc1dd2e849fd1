"""Storage configuration helpers for the internal and card volume mappings."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, Mapping

import tomllib


VOLUME_NAMES = ("int", "ext")
DEFAULT_LABELS = {"int": "Internal", "ext": "SD card"}
DEFAULT_FS_TYPES = {"int": "LittleFS", "ext": "FAT32"}
MAX_NAME_LENGTH = 254


class StorageConfigError(ValueError):
    """Raised when a storage configuration file fails validation."""


@dataclass(frozen=True)
class CardIdentity:
    """Identity block reported for the removable card by ``info /ext``."""

    manufacturer_id: int = 0
    oem_id: str = "--"
    product_name: str = "HOST"
    revision_major: int = 1
    revision_minor: int = 0
    serial_number: int = 0
    manufacturing_month: int = 1
    manufacturing_year: int = 2020


@dataclass(frozen=True)
class VolumeMapping:
    """Resolved host directory backing one device volume."""

    name: str
    root: Path
    label: str
    fs_type: str
    read_only: bool = False
    capacity_kib: int | None = None

    def resolve_path(self, relative: str) -> Path:
        """Return the host path for ``relative`` within this volume."""

        parts = validate_relative_path(relative)
        return self.root.joinpath(*parts)


@dataclass(frozen=True)
class StorageConfig:
    """Active volume mappings used by the host storage service."""

    volumes: Dict[str, VolumeMapping]
    any_volume: str = "ext"
    card: CardIdentity = field(default_factory=CardIdentity)

    def __post_init__(self) -> None:  # pragma: no cover - dataclass internals
        object.__setattr__(self, "volumes", dict(self.volumes))

    def require_volume(self, name: str) -> VolumeMapping:
        """Return ``VolumeMapping`` for ``name`` or raise a ``KeyError``."""

        mapping = self.volumes.get(name)
        if mapping is None:
            raise KeyError(f"volume {name} is not configured")
        return mapping

    def default_volume(self) -> str:
        """Return the volume that ``/any`` resolves to."""

        if self.any_volume in self.volumes:
            return self.any_volume
        return "int"


def load_storage_config(config_path: Path) -> StorageConfig:
    """Parse and validate storage configuration at ``config_path``."""

    with config_path.open("rb") as stream:
        raw_data = tomllib.load(stream)

    storage = _parse_storage_section(raw_data)
    volumes = _parse_volume_mappings(storage.get("volumes", []), base=config_path.parent)

    if "int" not in volumes:
        raise StorageConfigError("storage configuration must define the int volume")

    any_volume = storage.get("any_volume", "ext")
    if any_volume not in VOLUME_NAMES:
        raise StorageConfigError(
            f"any_volume must be one of {', '.join(VOLUME_NAMES)}, received {any_volume!r}"
        )

    card = _parse_card_identity(storage.get("card"))
    return StorageConfig(volumes=volumes, any_volume=any_volume, card=card)


def build_storage_config(
    internal: Path,
    external: Path | None = None,
    *,
    any_volume: str = "ext",
) -> StorageConfig:
    """Build a configuration from bare host directories."""

    volumes: Dict[str, VolumeMapping] = {}
    for name, raw_root in (("int", internal), ("ext", external)):
        if raw_root is None:
            continue
        root = Path(raw_root).expanduser().resolve()
        root.mkdir(parents=True, exist_ok=True)
        volumes[name] = VolumeMapping(
            name=name,
            root=root,
            label=DEFAULT_LABELS[name],
            fs_type=DEFAULT_FS_TYPES[name],
        )
    return StorageConfig(volumes=volumes, any_volume=any_volume)


def _parse_storage_section(data: Mapping[str, Any]) -> Mapping[str, Any]:
    storage = data.get("storage")
    if storage is None:
        raise StorageConfigError("storage configuration requires a [storage] table")
    if not isinstance(storage, Mapping):
        raise StorageConfigError("[storage] section must be a mapping")
    return storage


def _parse_volume_mappings(entries: Any, *, base: Path) -> Dict[str, VolumeMapping]:
    if entries is None:
        return {}
    if not isinstance(entries, Iterable):
        raise StorageConfigError("[[storage.volumes]] must be an array of tables")

    resolved: Dict[str, VolumeMapping] = {}
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, Mapping):
            raise StorageConfigError(
                f"volume entry #{index} must be a mapping, received {type(entry)!r}"
            )
        name = entry.get("name")
        if name not in VOLUME_NAMES:
            raise StorageConfigError(
                f"volume entry #{index} must be named one of {', '.join(VOLUME_NAMES)}"
            )
        if name in resolved:
            raise StorageConfigError(f"volume {name} defined multiple times")

        root = _normalise_volume_path(entry.get("path"), base=base)
        if not root.exists():
            raise StorageConfigError(f"volume {name} root does not exist: {root}")
        if not root.is_dir():
            raise StorageConfigError(f"volume {name} root is not a directory: {root}")

        capacity = entry.get("capacity_kib")
        if capacity is not None and (not isinstance(capacity, int) or capacity <= 0):
            raise StorageConfigError(f"volume {name} capacity_kib must be a positive integer")

        resolved[name] = VolumeMapping(
            name=name,
            root=root,
            label=str(entry.get("label", DEFAULT_LABELS[name])),
            fs_type=str(entry.get("fs_type", DEFAULT_FS_TYPES[name])),
            read_only=bool(entry.get("read_only", False)),
            capacity_kib=capacity,
        )
    return resolved


def _parse_card_identity(raw_card: Any) -> CardIdentity:
    if raw_card is None:
        return CardIdentity()
    if not isinstance(raw_card, Mapping):
        raise StorageConfigError("[storage.card] section must be a mapping")
    known = set(CardIdentity.__dataclass_fields__)
    unknown = sorted(set(raw_card) - known)
    if unknown:
        raise StorageConfigError(f"unknown card fields: {', '.join(unknown)}")
    return CardIdentity(**dict(raw_card))


def _normalise_volume_path(raw_path: Any, *, base: Path) -> Path:
    if raw_path is None:
        raise StorageConfigError("volume entries must include a path")
    if isinstance(raw_path, (str, Path)):
        path = Path(raw_path).expanduser()
    else:  # pragma: no cover - defensive guard
        raise StorageConfigError("volume path must be a string or path-like")

    if not path.is_absolute():
        path = (base / path).resolve()
    else:
        path = path.resolve()
    return path


def validate_relative_path(relative: str) -> tuple[str, ...]:
    """Split a volume-relative path into host-safe components."""

    if not isinstance(relative, str):
        raise StorageConfigError("paths must be text")
    parts = tuple(part for part in PurePosixPath(relative).parts if part != "/")
    for part in parts:
        if part in (".", ".."):
            raise StorageConfigError(f"path '{relative}' contains relative components")
        if "\\" in part or "\x00" in part:
            raise StorageConfigError(f"path '{relative}' contains forbidden characters")
        if len(part) > MAX_NAME_LENGTH:
            raise StorageConfigError(f"name '{part[:16]}...' exceeds {MAX_NAME_LENGTH} characters")
    return parts


__all__ = [
    "CardIdentity",
    "MAX_NAME_LENGTH",
    "StorageConfig",
    "StorageConfigError",
    "VOLUME_NAMES",
    "VolumeMapping",
    "build_storage_config",
    "load_storage_config",
    "validate_relative_path",
]
