"""Filesystem helpers reused across multiple layers."""

from __future__ import annotations

import shutil
from pathlib import Path


def ensure_directory(directory: Path) -> Path:
    """Ensure ``directory`` exists as a folder and return it."""

    if directory.exists():
        if not directory.is_dir():
            raise NotADirectoryError(f"Path exists but is not a directory: {directory}")
        return directory

    directory.mkdir(parents=True, exist_ok=True)
    return directory


def ensure_parent_directory(path: Path) -> Path:
    """Ensure the parent directory for ``path`` exists and return it."""

    return ensure_directory(path.parent)


def remove_tree(path: Path) -> bool:
    """Remove ``path`` recursively if present. Returns True when something was removed."""

    if not path.exists():
        return False
    if path.is_dir():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


def descend_single_child(directory: Path) -> Path:
    """Follow a chain of directories that each contain exactly one entry.

    Source archives usually unpack into a single ``name-version/`` folder.
    """

    current = directory
    while True:
        entries = list(current.iterdir())
        if len(entries) == 1 and entries[0].is_dir():
            current = entries[0]
            continue
        return current


def write_text_file(path: Path, content: str) -> None:
    """Persist textual content ensuring parent directories exist."""

    _ = ensure_parent_directory(path)
    _ = path.write_text(content, encoding="utf-8")


__all__ = [
    "descend_single_child",
    "ensure_directory",
    "ensure_parent_directory",
    "remove_tree",
    "write_text_file",
]
