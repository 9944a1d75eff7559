"""Tests for object discovery and header pairing."""

from __future__ import annotations

from pathlib import Path

import pytest

from abitrack.features.pipeline.domain.headers import (
    find_headers,
    max_common_prefix,
    pair_headers,
    same_content,
)
from abitrack.features.pipeline.domain.object_scan import (
    ELF_MAGIC,
    ObjectFilter,
    find_objects,
    match_file,
    relative_objects,
)


def _elf(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_bytes(ELF_MAGIC + b"\x02\x01\x01")
    return path


def test_find_objects_ignores_symlinks_and_non_elf(tmp_path: Path) -> None:
    """Only real ELF shared objects are listed, once each."""

    real = _elf(tmp_path / "lib" / "libz.so.1.2.11")
    (tmp_path / "lib" / "libz.so.1").symlink_to(real.name)
    _ = (tmp_path / "lib" / "libfake.so").write_text("#!/bin/sh\n")
    _ = _elf(tmp_path / "bin" / "tool")

    assert find_objects(tmp_path) == [real]


def test_kernel_mode_finds_modules_and_image(tmp_path: Path) -> None:
    _ = _elf(tmp_path / "vmlinux")
    _ = _elf(tmp_path / "drivers" / "net" / "e1000.ko")
    _ = _elf(tmp_path / "lib" / "libz.so.1")

    assert relative_objects(tmp_path, kernel_mode=True) == ["drivers/net/e1000.ko", "vmlinux"]


@pytest.mark.parametrize(
    "entry, path, expected",
    [
        ("libz.so.1", "lib/libz.so.1", True),
        ("test/", "lib/test/libt.so", True),
        ("libz.so.2", "lib/libz.so.1", True),
        ("libz.*debug.so", "lib/libz-debug.so", True),
        ("libpng.so", "lib/libz.so.1", False),
    ],
)
def test_match_file(entry: str, path: str, expected: bool) -> None:
    """Entries match by name, directory, pattern or short name."""

    assert match_file(path, [entry]) is expected


def test_object_filter_skip_and_check(tmp_path: Path) -> None:
    """skip_objects removes, check_objects restricts."""

    for name in ("libz.so.1", "libzdebug.so.1", "libminizip.so.1"):
        _ = _elf(tmp_path / "lib" / name)

    skip_only = ObjectFilter(skip_objects=("libzdebug.so",))
    check_only = ObjectFilter(check_objects=("libz.so",))

    assert relative_objects(tmp_path, object_filter=skip_only) == [
        "lib/libminizip.so.1",
        "lib/libz.so.1",
    ]
    assert relative_objects(tmp_path, object_filter=check_only) == ["lib/libz.so.1"]


def test_max_common_prefix_prefers_shared_directory() -> None:
    paths = [
        Path("/inst/include/zlib.h"),
        Path("/inst/include/zconf.h"),
        Path("/inst/include/sub/extra.h"),
    ]

    assert max_common_prefix(paths) == Path("/inst/include")
    assert max_common_prefix([]) is None


def test_pair_headers_by_relative_path_and_unique_name(tmp_path: Path) -> None:
    """Headers that moved directories are still paired by unique file name."""

    old_root = tmp_path / "old"
    new_root = tmp_path / "new"
    for rel in ("include/zlib.h", "include/zconf.h", "include/gone.h"):
        _ = (old_root / rel).parent.mkdir(parents=True, exist_ok=True)
        _ = (old_root / rel).write_text(rel)
    for rel in ("include/zlib.h", "include/zlib/zconf.h", "include/other.h"):
        _ = (new_root / rel).parent.mkdir(parents=True, exist_ok=True)
        _ = (new_root / rel).write_text(rel)

    pairs = pair_headers(
        find_headers(old_root),
        find_headers(new_root),
        old_root=old_root,
        new_root=new_root,
    )

    assert [(rel, new.relative_to(new_root).as_posix()) for rel, _, new in pairs] == [
        ("zconf.h", "include/zlib/zconf.h"),
        ("zlib.h", "include/zlib.h"),
    ]


def test_same_content(tmp_path: Path) -> None:
    left = tmp_path / "a.h"
    right = tmp_path / "b.h"
    _ = left.write_text("int x;")
    _ = right.write_text("int x;")

    assert same_content(left, right)
    _ = right.write_text("int y;")
    assert not same_content(left, right)
