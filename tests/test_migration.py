from __future__ import annotations

import itertools

import pytest

from storageshell.device import FsError, StorageError
from storageshell.runtime.commands import migrate_path
from storageshell.runtime.migration import MigrationEngine, candidate_names, migrate


def test_candidate_names_keep_file_extensions() -> None:
    assert list(itertools.islice(candidate_names("photo.png", is_dir=False), 3)) == [
        "photo.png",
        "photo_1.png",
        "photo_2.png",
    ]
    assert list(itertools.islice(candidate_names("apps.d", is_dir=True), 2)) == [
        "apps.d",
        "apps.d_1",
    ]
    assert list(itertools.islice(candidate_names(".hidden", is_dir=False), 2)) == [
        ".hidden",
        ".hidden_1",
    ]


def test_collision_takes_next_free_suffix(storage, volumes) -> None:
    internal, external = volumes
    (internal / "foo").write_bytes(b"new")
    (external / "foo").write_bytes(b"old")
    (external / "foo_1").write_bytes(b"older")

    engine = migrate(storage, "/int/foo", "/ext/foo")

    assert (external / "foo_2").read_bytes() == b"new"
    assert (external / "foo").read_bytes() == b"old"
    assert (external / "foo_1").read_bytes() == b"older"
    assert not (internal / "foo").exists()
    assert engine.renamed == [("/int/foo", "/ext/foo_2")]


def test_directory_merge_is_recursive_and_never_overwrites(storage, volumes) -> None:
    internal, external = volumes
    (internal / "old" / "sub").mkdir(parents=True)
    (internal / "old" / "a.txt").write_bytes(b"A-new")
    (internal / "old" / "fresh").write_bytes(b"fresh")
    (internal / "old" / "sub" / "deep").write_bytes(b"deep")
    (external / "new").mkdir()
    (external / "new" / "a.txt").write_bytes(b"A-old")
    (external / "new" / "sub").mkdir()

    migrate(storage, "/int/old", "/ext/new")

    assert not (internal / "old").exists()
    assert (external / "new" / "a.txt").read_bytes() == b"A-old"
    assert (external / "new" / "a_1.txt").read_bytes() == b"A-new"
    assert (external / "new" / "fresh").read_bytes() == b"fresh"
    # Directories collide by name too: the moved subtree lands beside the old one.
    assert (external / "new" / "sub_1" / "deep").read_bytes() == b"deep"
    assert storage.open_handle_count == 0


def test_same_volume_migration_renames(storage, volumes) -> None:
    internal, _external = volumes
    (internal / "src" / "x").mkdir(parents=True)

    engine = MigrationEngine(storage)
    engine.migrate("/int/src", "/int/dst")

    assert (internal / "dst" / "x").is_dir()
    assert not (internal / "src").exists()
    assert engine.moved == [("/int/src", "/int/dst")]


def test_missing_source_is_a_no_op(storage) -> None:
    engine = migrate(storage, "/int/nothing", "/ext/nothing")

    assert engine.moved == []


def test_destination_inside_source_is_rejected(storage, volumes) -> None:
    internal, _external = volumes
    (internal / "dir").mkdir()

    with pytest.raises(StorageError) as excinfo:
        migrate(storage, "/int/dir", "/int/dir/inner")

    assert excinfo.value.error is FsError.INVALID_PARAMETER
    assert (internal / "dir").is_dir()


def test_migrating_a_volume_keeps_its_root(storage, volumes) -> None:
    internal, external = volumes
    (internal / "settings").write_bytes(b"cfg")
    (external / "settings").write_bytes(b"other")

    migrate(storage, "/int", "/ext")

    assert internal.is_dir()
    assert list(internal.iterdir()) == []
    assert (external / "settings_1").read_bytes() == b"cfg"


def test_migrate_command_reports_errors_and_usage(ctx, console, volumes) -> None:
    internal, _external = volumes
    (internal / "dir").mkdir()

    migrate_path(ctx, "/int/dir", '"/int/dir/x"')
    assert console.collect_transmit() == b"Storage error: invalid parameter\r\n"

    migrate_path(ctx, "/int/dir", "")
    assert console.collect_transmit().startswith(b"Usage:\r\n")


def test_any_destination_inside_source_is_rejected(ctx, console, volumes) -> None:
    _internal, external = volumes
    (external / "d").mkdir()
    (external / "d" / "f").write_bytes(b"keep")

    # Why: /any names the card here, so /any/d/sub lies inside /ext/d.
    migrate_path(ctx, "/ext/d", "/any/d/sub")
    migrate_path(ctx, "/ext/d", "/any/d")

    assert console.collect_transmit() == b"Storage error: invalid parameter\r\n" * 2
    assert sorted(p.relative_to(external).as_posix() for p in external.rglob("*")) == [
        "d",
        "d/f",
    ]
    assert ctx.storage.open_handle_count == 0


def test_any_destination_uses_the_concrete_volume(storage, volumes) -> None:
    internal, external = volumes
    (internal / "a").mkdir()
    (internal / "a" / "f").write_bytes(b"f")

    engine = migrate(storage, "/int/a", "/any/a")

    assert (external / "a" / "f").read_bytes() == b"f"
    assert not (internal / "a").exists()
    assert engine.moved[-1] == ("/int/a", "/ext/a")
