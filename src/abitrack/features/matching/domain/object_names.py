"""Summary: Name normalisation for shared objects and kernel modules.
Why: Matching across releases needs version-free names, e.g. ``libfoo.so.1``
and ``libfoo.so.2`` both reduce to ``libfoo``."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Final

_SHORT: Final[re.Pattern[str]] = re.compile(r"^(.+)\.(?:so|ko)[\d.]*$")

# Tried in order; the first that matches wins.
_SUPER_SHORT: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^(.+?)[\-_]*(?:\d+[\d.]*-[\w.\-]*)\.so(?:\.|$)"),  # libABC-4.6.6-alpha01.so
    re.compile(r"^(.+?)-(?:[a-zA-Z]?\d[\w.\-]*)\.so(?:\.|$)"),  # libABC-q16.so.1
    re.compile(r"^(.+?)[\d.\-_]*\.so(?:\.|$)"),  # libABC4.6.so
)

_SOVER_POST: Final[re.Pattern[str]] = re.compile(r"\.so\.([\w.\-]+)")
_SOVER_PRE: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"(\d+[\d.]*-[\w.\-]*\d+)\.so(?:\.|$)"),  # libMagickCore6-Q16.so.1
    re.compile(r"-([a-zA-Z]?\d+(?:[\w.\-]*\d+|))\.so(?:\.|$)"),  # libMagickCore-6.Q16.so.1
)
_SOVER_PLAIN: Final[re.Pattern[str]] = re.compile(r"\.?([\d.]+)\.so(?:\.|$)")
_ARCH_NOISE: Final[re.Pattern[str]] = re.compile(r"x11|x86[-_]64|x86", re.IGNORECASE)


def file_name(path: str) -> str:
    return PurePosixPath(path).name


def short_name(path: str) -> str | None:
    """Strip the ``.so[.N...]`` or ``.ko`` suffix from the file name."""

    match = _SHORT.match(file_name(path))
    return match.group(1) if match else None


def super_short_name(path: str) -> str | None:
    """Additionally strip version and release tokens embedded in the name."""

    name = file_name(path)
    for pattern in _SUPER_SHORT:
        match = pattern.match(name)
        if match:
            return match.group(1)
    return None


def soname_version(soname: str) -> str | None:
    """Extract the interface version carried by a soname.

    ``libfoo.so.1.2`` gives ``1.2``; ``libMagickCore-6.Q16.so.1`` gives ``6.Q16.1``.
    """

    post_match = _SOVER_POST.search(soname)
    post = post_match.group(1) if post_match else None

    name = _ARCH_NOISE.sub("", soname)
    pre: str | None = None
    for pattern in _SOVER_PRE:
        match = pattern.search(name)
        if match:
            pre = match.group(1)
            break
    else:
        if post is None:
            match = _SOVER_PLAIN.search(name)
            if match:
                pre = match.group(1)

    parts = [part for part in (pre, post) if part]
    return ".".join(parts) if parts else None


__all__ = ["file_name", "short_name", "soname_version", "super_short_name"]
