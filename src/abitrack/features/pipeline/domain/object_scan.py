"""src/abitrack/features/pipeline/domain/object_scan.py
Where: Pipeline feature domain layer.
What: Find shared objects (or kernel modules) under an installed tree and
apply the profile's object skip/check lists.
Why: Every per-object stage works from the same filtered, sorted object list.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from abitrack.features.matching.domain.object_names import file_name, short_name

ELF_MAGIC: Final[bytes] = b"\x7fELF"
KERNEL_IMAGE: Final[str] = "vmlinux"

_SHARED_OBJECT: Final[re.Pattern[str]] = re.compile(r"\.so(\..*)?$")
_PATTERN_CHARS: Final[re.Pattern[str]] = re.compile(r"[*+(|\\]")


def is_elf(path: Path) -> bool:
    try:
        with path.open("rb") as handle:
            return handle.read(len(ELF_MAGIC)) == ELF_MAGIC
    except OSError:
        return False


def _is_candidate(path: Path, *, kernel_mode: bool) -> bool:
    if kernel_mode:
        return path.name.endswith(".ko") or path.name == KERNEL_IMAGE
    return _SHARED_OBJECT.search(path.name) is not None


def find_objects(installed: Path, *, kernel_mode: bool = False) -> list[Path]:
    """Regular ELF files under ``installed`` that look like shared objects.

    Symlinks are ignored so ``libfoo.so -> libfoo.so.1`` is counted once.
    """

    found = [
        path
        for path in installed.rglob("*")
        if not path.is_symlink()
        and path.is_file()
        and _is_candidate(path, kernel_mode=kernel_mode)
        and is_elf(path)
    ]
    return sorted(found, key=lambda path: (str(path).lower(), str(path)))


def match_file(path: str, entries: Iterable[str], *, by_short_name: bool = True) -> bool:
    """Return True when ``path`` matches one of ``entries``.

    An entry matches on the exact file name, as a substring of the path when
    it ends with ``/``, as a full regex on the file name when it contains
    pattern characters, and otherwise on the short name.
    """

    name = file_name(path)
    for entry in entries:
        if entry == name:
            return True
        if entry.endswith("/"):
            if entry in path:
                return True
            continue
        if _PATTERN_CHARS.search(entry):
            try:
                if re.fullmatch(entry, name):
                    return True
            except re.error:
                continue
        elif by_short_name:
            wanted = short_name(entry)
            if wanted is not None and wanted == short_name(name):
                return True
    return False


@dataclass(frozen=True, slots=True)
class ObjectFilter:
    skip_objects: Sequence[str] = ()
    check_objects: Sequence[str] | None = None

    def skip(self, relative_path: str) -> bool:
        if match_file(relative_path, self.skip_objects):
            return True
        if self.check_objects is not None and not match_file(relative_path, self.check_objects):
            return True
        return False


def relative_objects(
    installed: Path,
    *,
    kernel_mode: bool = False,
    object_filter: ObjectFilter | None = None,
) -> list[str]:
    """Relative (POSIX) paths of the objects to process, sorted case-insensitively."""

    rel_paths = [
        path.relative_to(installed).as_posix()
        for path in find_objects(installed, kernel_mode=kernel_mode)
    ]
    if object_filter is not None:
        rel_paths = [rel for rel in rel_paths if not object_filter.skip(rel)]
    return sorted(rel_paths, key=lambda rel: (rel.lower(), rel))


__all__ = [
    "ELF_MAGIC",
    "KERNEL_IMAGE",
    "ObjectFilter",
    "find_objects",
    "is_elf",
    "match_file",
    "relative_objects",
]
