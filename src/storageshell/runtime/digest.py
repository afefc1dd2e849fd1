"""MD5 digest reporting for stored files."""
from __future__ import annotations

import hashlib

from ..device import AccessMode, FsError, OpenMode, StorageError, StorageService
from .context import CommandContext

DIGEST_BLOCK_SIZE = 512


def md5_file(storage: StorageService, path: str) -> str:
    """Return the lowercase hex MD5 of ``path``.

    Raises:
        StorageError: If the file cannot be opened or a read fails.
    """

    digest = hashlib.md5()
    with storage.open_file(path, AccessMode.READ, OpenMode.OPEN_EXISTING) as file:
        for chunk in iter(lambda: file.read(DIGEST_BLOCK_SIZE), b""):
            digest.update(chunk)
        if file.error is not FsError.OK:
            raise StorageError(file.error, path)
    return digest.hexdigest()


def report_md5(ctx: CommandContext, path: str) -> None:
    try:
        ctx.print(md5_file(ctx.storage, path))
    except StorageError as exc:
        ctx.print_error(exc)


__all__ = ["DIGEST_BLOCK_SIZE", "md5_file", "report_md5"]
