from storageshell.device import EntryKind
from storageshell.runtime.tree_walker import DirWalk, walk_tree


def test_empty_directory_prints_empty(ctx, console) -> None:
    walk_tree(ctx, "/int")

    assert console.collect_transmit() == b"\tEmpty\r\n"


def test_one_file_and_one_directory(ctx, console, volumes) -> None:
    internal, _external = volumes
    (internal / "dir").mkdir()
    (internal / "file").write_bytes(b"12345")

    walk_tree(ctx, "/int")

    assert console.collect_transmit() == b"\t[D] /int/dir\r\n\t[F] /int/file 5b\r\n"
    assert ctx.storage.open_handle_count == 0


def test_nested_entries_are_pre_order(ctx, console, volumes) -> None:
    internal, _external = volumes
    (internal / "a" / "b").mkdir(parents=True)
    (internal / "a" / "b" / "c").write_bytes(b"x")
    (internal / "z").write_bytes(b"")

    walk_tree(ctx, "/int")

    assert console.collect_transmit().decode().splitlines() == [
        "\t[D] /int/a",
        "\t[D] /int/a/b",
        "\t[F] /int/a/b/c 1b",
        "\t[F] /int/z 0b",
    ]


def test_root_walks_each_volume(ctx, console, volumes) -> None:
    _internal, external = volumes
    (external / "photo.png").write_bytes(b"png")

    walk_tree(ctx, "/")

    assert console.collect_transmit() == b"\tEmpty\r\n\t[F] /ext/photo.png 3b\r\n"


def test_missing_directory_reports_error(ctx, console) -> None:
    walk_tree(ctx, "/ext/missing")

    assert console.collect_transmit() == b"Storage error: file/dir not exist\r\n"


def test_non_recursive_walk_stays_at_top_level(storage, volumes) -> None:
    internal, _external = volumes
    (internal / "dir").mkdir()
    (internal / "dir" / "inner").write_bytes(b"")

    with DirWalk(storage, recursive=False) as walk:
        walk.open("/int")
        items = list(walk)

    assert [(path, entry.kind) for path, entry in items] == [("/int/dir", EntryKind.DIRECTORY)]
    assert storage.open_handle_count == 0


def test_closing_mid_walk_releases_every_level(storage, volumes) -> None:
    internal, _external = volumes
    (internal / "a" / "b").mkdir(parents=True)
    (internal / "a" / "b" / "c").write_bytes(b"")

    walk = DirWalk(storage)
    walk.open("/int")
    walk.read()
    walk.read()
    assert storage.open_handle_count == 3

    walk.close()
    assert storage.open_handle_count == 0
