import hashlib

import pytest

from storageshell.device import FsError, StorageError
from storageshell.runtime.digest import md5_file, report_md5


def test_empty_file_digest(ctx, console, volumes) -> None:
    internal, _external = volumes
    (internal / "empty").write_bytes(b"")

    report_md5(ctx, "/int/empty")

    assert console.collect_transmit() == b"d41d8cd98f00b204e9800998ecf8427e\r\n"


def test_equal_content_gives_equal_digest(storage, volumes) -> None:
    internal, external = volumes
    payload = bytes(range(256)) * 9
    (internal / "a.bin").write_bytes(payload)
    (external / "copy.bin").write_bytes(payload)

    digest = md5_file(storage, "/int/a.bin")

    assert digest == md5_file(storage, "/ext/copy.bin")
    assert digest == hashlib.md5(payload).hexdigest()
    assert storage.open_handle_count == 0


def test_missing_file_digest(ctx, console, storage) -> None:
    report_md5(ctx, "/ext/none")

    assert console.collect_transmit() == b"Storage error: file/dir not exist\r\n"
    with pytest.raises(StorageError) as excinfo:
        md5_file(storage, "/ext/none")
    assert excinfo.value.error is FsError.NOT_EXIST
