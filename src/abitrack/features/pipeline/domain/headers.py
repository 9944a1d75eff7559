"""Summary: Locate and pair header files between two installed trees.
Why: Headers move between include directories across releases; pairing by
relative path below the common prefix, then by unique file name, keeps the
diff focused on real changes."""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Final

_HEADER: Final[re.Pattern[str]] = re.compile(r"\.(h|hh|hp|hxx|hpp|h\+\+|tcc)$", re.IGNORECASE)


def is_header(path: Path | str) -> bool:
    return _HEADER.search(str(path)) is not None


def find_headers(root: Path) -> list[Path]:
    return sorted(
        (path for path in root.rglob("*") if path.is_file() and is_header(path)),
        key=lambda path: (str(path).lower(), str(path)),
    )


def max_common_prefix(paths: Iterable[Path]) -> Path | None:
    """Deepest directory shared by the largest number of ``paths``."""

    counts: Counter[str] = Counter()
    for path in paths:
        pure = PurePosixPath(path.as_posix())
        for parent in pure.parents:
            if str(parent) in {".", pure.anchor}:
                continue
            counts[str(parent)] += 1
    if not counts:
        return None
    best = max(counts.values())
    deepest = max(
        (prefix for prefix, count in counts.items() if count == best),
        key=lambda prefix: (len(prefix), prefix),
    )
    return Path(deepest)


def pair_headers(
    old_headers: list[Path],
    new_headers: list[Path],
    *,
    old_root: Path,
    new_root: Path,
) -> list[tuple[str, Path, Path]]:
    """Pair old and new headers as ``(relative_path, old, new)`` triples.

    Headers are matched by path below each side's common prefix, falling back
    to a file name that is unique on the new side.
    """

    old_prefix = max_common_prefix(old_headers) or old_root
    new_prefix = max_common_prefix(new_headers) or new_root

    old_by_rel = {_relative(path, old_prefix): path for path in old_headers}
    new_by_rel = {_relative(path, new_prefix): path for path in new_headers}
    new_by_name: dict[str, list[Path]] = defaultdict(list)
    for path in new_headers:
        new_by_name[path.name].append(path)

    pairs: list[tuple[str, Path, Path]] = []
    for rel in sorted(old_by_rel, key=lambda item: (item.lower(), item)):
        new_path = new_by_rel.get(rel)
        if new_path is None:
            candidates = new_by_name.get(PurePosixPath(rel).name, [])
            if len(candidates) == 1:
                new_path = candidates[0]
        if new_path is not None:
            pairs.append((rel, old_by_rel[rel], new_path))
    return pairs


def _relative(path: Path, prefix: Path) -> str:
    try:
        return path.relative_to(prefix).as_posix()
    except ValueError:
        return path.name


def same_content(left: Path, right: Path) -> bool:
    if left.stat().st_size != right.stat().st_size:
        return False
    return left.read_bytes() == right.read_bytes()


__all__ = [
    "find_headers",
    "is_header",
    "max_common_prefix",
    "pair_headers",
    "same_content",
]
