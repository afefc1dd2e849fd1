"""Single-call storage command handlers.

Each handler receives a :class:`CommandContext`, performs one primitive call
(or a short sequence of them), and reports failures with the storage error
description. None of them keep state between invocations.
"""
from __future__ import annotations

import logging

from ..args import read_probably_quoted
from ..device import FsError, StorageError
from ..paths import PathKind, classify_path
from .context import CommandContext
from .migration import MigrationEngine
from .tree_walker import format_entry

LOGGER = logging.getLogger(__name__)

INTERNAL_FS_TYPE = "LittleFS"


def show_info(ctx: CommandContext, path: str) -> None:
    kind = classify_path(path).kind
    try:
        if kind is PathKind.INTERNAL:
            total, free = ctx.storage.fs_info(path)
            ctx.print(f"Label: {ctx.storage.device_name or 'Unknown'}")
            ctx.print(f"Type: {INTERNAL_FS_TYPE}")
            ctx.print(f"{total // 1024}KiB total")
            ctx.print(f"{free // 1024}KiB free")
        elif kind is PathKind.EXTERNAL:
            info = ctx.storage.sd_info()
            ctx.print(f"Label: {info.label}")
            ctx.print(f"Type: {info.fs_type}")
            ctx.print(f"{info.kb_total}KiB total")
            ctx.print(f"{info.kb_free}KiB free")
            ctx.print(
                f"{info.manufacturer_id:02x}{info.oem_id} {info.product_name} "
                f"v{info.product_revision_major}.{info.product_revision_minor}"
            )
            ctx.print(
                f"SN:{info.product_serial_number:04x} "
                f"{info.manufacturing_month:02d}/{info.manufacturing_year}"
            )
        else:
            ctx.print_usage()
    except StorageError as exc:
        ctx.print_error(exc)


def format_volume(ctx: CommandContext, path: str) -> None:
    kind = classify_path(path).kind
    if kind is PathKind.INTERNAL:
        ctx.print_error(StorageError(FsError.NOT_IMPLEMENTED, "format /int"))
        return
    if kind is not PathKind.EXTERNAL:
        ctx.print_usage()
        return

    if not ctx.confirm("Formatting SD card, All data will be lost! Are you sure"):
        ctx.print("Cancelled.")
        return
    ctx.print("Formatting, please wait...")
    try:
        ctx.storage.sd_format()
    except StorageError as exc:
        ctx.print_error(exc)
        return
    ctx.print("SD card was successfully formatted.")


def list_directory(ctx: CommandContext, path: str) -> None:
    if classify_path(path).kind is PathKind.ROOT:
        for volume in ("int", "ext", "any"):
            ctx.print(f"\t[D] {volume}")
        return

    try:
        directory = ctx.storage.open_dir(path)
    except StorageError as exc:
        ctx.print_error(exc)
        return
    with directory:
        read_done = False
        for entry in directory:
            read_done = True
            ctx.print(format_entry(entry.name, entry))
        if not read_done:
            ctx.print("\tEmpty")


def show_stat(ctx: CommandContext, path: str) -> None:
    volume_path = classify_path(path)
    try:
        if volume_path.kind is PathKind.ROOT:
            ctx.print("Storage")
        elif volume_path.is_volume:
            total, free = ctx.storage.fs_info(path)
            ctx.print(f"Storage, {total // 1024}KiB total, {free // 1024}KiB free")
        else:
            entry = ctx.storage.stat(path)
            if entry.is_dir:
                ctx.print("Directory")
            else:
                ctx.print(f"File, size: {entry.size}b")
    except StorageError as exc:
        ctx.print_error(exc)


def show_timestamp(ctx: CommandContext, path: str) -> None:
    try:
        timestamp = ctx.storage.timestamp(path)
    except StorageError as exc:
        LOGGER.warning("timestamp failed for %s: %s", path, exc)
        ctx.print("Invalid arguments")
        return
    ctx.print(f"Timestamp {timestamp}")


def remove_path(ctx: CommandContext, path: str) -> None:
    try:
        ctx.storage.remove(path)
    except StorageError as exc:
        ctx.print_error(exc)


def make_directory(ctx: CommandContext, path: str) -> None:
    try:
        ctx.storage.mkdir(path)
    except StorageError as exc:
        ctx.print_error(exc)


def copy_path(ctx: CommandContext, path: str, args: str) -> None:
    new_path, _ = read_probably_quoted(args)
    if new_path is None:
        ctx.print_usage()
        return
    try:
        ctx.storage.copy(path, new_path)
    except StorageError as exc:
        ctx.print_error(exc)


def rename_path(ctx: CommandContext, path: str, args: str) -> None:
    new_path, _ = read_probably_quoted(args)
    if new_path is None:
        ctx.print_usage()
        return
    try:
        ctx.storage.rename(path, new_path)
    except StorageError as exc:
        ctx.print_error(exc)


def migrate_path(ctx: CommandContext, path: str, args: str) -> None:
    new_path, _ = read_probably_quoted(args)
    if new_path is None:
        ctx.print_usage()
        return
    try:
        MigrationEngine(ctx.storage).migrate(path, new_path)
    except StorageError as exc:
        ctx.print_error(exc)


__all__ = [
    "copy_path",
    "format_volume",
    "list_directory",
    "make_directory",
    "migrate_path",
    "remove_path",
    "rename_path",
    "show_info",
    "show_stat",
    "show_timestamp",
]
