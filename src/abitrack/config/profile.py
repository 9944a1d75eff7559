"""Where: src/abitrack/config/profile.py
What: Parse a library profile (JSON) into typed, immutable configuration.
Why: The pipeline depends only on the ordered version list, per-version
installed roots and boolean stage flags; everything else is validated here.
Assumptions: - Versions are listed newest first; list position defines adjacency.
Trade-offs: - Legacy capitalised keys and "On"/"Off" strings are accepted so
  existing profiles keep working.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Final

from abitrack.shared.errors import AccessError, ProfileError


LIVE_VERSION: Final[str] = "current"

_PATTERN_CHARS: Final[re.Pattern[str]] = re.compile(r"[*+(|\\]")

# snake_case key -> legacy key accepted in older profiles
_LEGACY_KEYS: Final[dict[str, tuple[str, ...]]] = {
    "name": ("Name",),
    "title": ("Title",),
    "versions": ("Versions",),
    "number": ("Number",),
    "source": ("Source",),
    "installed": ("Installed",),
    "changelog": ("Changelog",),
    "headers_diff": ("HeadersDiff", "RfcDiff"),
    "pkg_diff": ("PkgDiff",),
    "abi_view": ("ABIView",),
    "deleted": ("Deleted",),
    "skip_objects": ("SkipObjects",),
    "check_objects": ("CheckObjects",),
    "skip_headers": ("SkipHeaders",),
    "skip_symbols": ("SkipSymbols",),
    "skip_types": ("SkipTypes",),
    "skip_internal_symbols": ("SkipInternalSymbols",),
    "skip_internal_types": ("SkipInternalTypes",),
    "skip_typedef_uncover": ("SkipTypedefUncover",),
    "skip_soversions": ("SkipSoversions",),
    "skip_versions": ("SkipVersions",),
    "minimal_version": ("MinimalVersion",),
    "private_abi": ("PrivateABI",),
    "mode": ("Mode",),
    "scm": (),
    "regen_dump": ("RegenDump",),
    "source_compat": ("SourceCompat",),
    "hide_empty": ("HideEmpty",),
}


class ScmKind(StrEnum):
    """Source code management system backing the live version."""

    GIT = "git"
    SVN = "svn"
    HG = "hg"


class ProfileMode(StrEnum):
    """Object discovery mode."""

    DEFAULT = "default"
    KERNEL = "kernel"


@dataclass(frozen=True, slots=True)
class VersionSpec:
    """One entry of the profile's version list."""

    number: str
    position: int
    source: Path | None = None
    installed: Path | None = None
    # None: unset, "on": auto-detect, "off": disabled, otherwise a file name
    changelog: str | None = None
    headers_diff: bool = False
    pkg_diff: bool = False
    abi_view: bool = False

    @property
    def is_live(self) -> bool:
        return self.number == LIVE_VERSION


@dataclass(frozen=True, slots=True)
class LibraryProfile:
    """Typed view of a library profile."""

    name: str
    versions: tuple[VersionSpec, ...]
    title: str = ""
    skip_objects: tuple[str, ...] = ()
    check_objects: tuple[str, ...] | None = None
    skip_headers: tuple[str, ...] = ()
    skip_symbols: Path | None = None
    skip_types: Path | None = None
    skip_internal_symbols: str | None = None
    skip_internal_types: str | None = None
    skip_typedef_uncover: bool = False
    skip_soversions: tuple[str, ...] = ()
    private_abi: bool = False
    mode: ProfileMode = ProfileMode.DEFAULT
    scm: ScmKind | None = None
    regen_dump: bool = True
    source_compat: bool = False
    hide_empty: bool = False

    @property
    def kernel_mode(self) -> bool:
        return self.mode is ProfileMode.KERNEL

    @property
    def display_title(self) -> str:
        return self.title or self.name

    def numbers(self) -> list[str]:
        """Version numbers, newest first."""
        return [spec.number for spec in self.versions]

    def find(self, number: str) -> VersionSpec | None:
        for spec in self.versions:
            if spec.number == number:
                return spec
        return None

    def previous(self, spec: VersionSpec) -> VersionSpec | None:
        """Return the version preceding ``spec`` in time (next list position)."""

        position = spec.position + 1
        if position >= len(self.versions):
            return None
        return self.versions[position]

    def pairs(self) -> list[tuple[VersionSpec, VersionSpec]]:
        """Adjacent ``(older, newer)`` pairs in list order."""

        result: list[tuple[VersionSpec, VersionSpec]] = []
        for spec in self.versions:
            older = self.previous(spec)
            if older is not None:
                result.append((older, spec))
        return result

    @property
    def live_version(self) -> VersionSpec | None:
        return self.find(LIVE_VERSION)


def matches_entry(entry: str, value: str) -> bool:
    """Exact match, or a full regex match when ``entry`` looks like a pattern."""

    if _PATTERN_CHARS.search(entry):
        try:
            return re.fullmatch(entry, value) is not None
        except re.error:
            return False
    return entry == value


def load_profile(path: Path) -> LibraryProfile:
    """Read and parse a profile file.

    Raises:
        AccessError: If the file cannot be read.
        ProfileError: If the content is not a valid profile.
    """

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise AccessError(f"can't access '{path}': {exc.strerror or exc}") from exc

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProfileError(f"invalid profile '{path}': {exc}") from exc

    if not isinstance(document, dict):
        raise ProfileError(f"invalid profile '{path}': top level must be an object")

    return parse_profile(document, base_dir=path.parent)


def parse_profile(document: Mapping[str, Any], *, base_dir: Path | None = None) -> LibraryProfile:
    """Build a :class:`LibraryProfile` from an already decoded mapping."""

    name = _get(document, "name")
    if not isinstance(name, str) or not name.strip():
        raise ProfileError("library name is not specified in the profile")

    raw_versions = _get(document, "versions") or []
    if not isinstance(raw_versions, list):
        raise ProfileError("'versions' must be an array")

    skip_versions = _str_tuple(_get(document, "skip_versions"))
    entries: list[Mapping[str, Any]] = []
    seen: set[str] = set()
    for raw in raw_versions:
        if not isinstance(raw, Mapping):
            raise ProfileError("each version entry must be an object")
        number = _get(raw, "number")
        if number is None or str(number).strip() == "":
            raise ProfileError("version number is missed in the profile")
        number = str(number)
        if number in seen:
            raise ProfileError(f"duplicate version number '{number}'")
        seen.add(number)
        if _flag(_get(raw, "deleted")):
            continue
        if any(matches_entry(entry, number) for entry in skip_versions):
            continue
        entries.append(raw)

    minimal = _get(document, "minimal_version")
    if minimal is not None:
        numbers = [str(_get(raw, "number")) for raw in entries]
        if str(minimal) in numbers:
            entries = entries[: numbers.index(str(minimal)) + 1]

    versions = tuple(
        _parse_version(raw, position, base_dir) for position, raw in enumerate(entries)
    )

    check_objects = _get(document, "check_objects")

    return LibraryProfile(
        name=name.strip(),
        title=str(_get(document, "title") or ""),
        versions=versions,
        skip_objects=_str_tuple(_get(document, "skip_objects")),
        check_objects=None if check_objects is None else _str_tuple(check_objects),
        skip_headers=_str_tuple(_get(document, "skip_headers")),
        skip_symbols=_path(_get(document, "skip_symbols"), base_dir),
        skip_types=_path(_get(document, "skip_types"), base_dir),
        skip_internal_symbols=_opt_str(_get(document, "skip_internal_symbols")),
        skip_internal_types=_opt_str(_get(document, "skip_internal_types")),
        skip_typedef_uncover=_flag(_get(document, "skip_typedef_uncover")),
        skip_soversions=_str_tuple(_get(document, "skip_soversions")),
        private_abi=_flag(_get(document, "private_abi")),
        mode=_parse_mode(_get(document, "mode")),
        scm=_parse_scm(document),
        regen_dump=_flag(_get(document, "regen_dump"), default=True),
        source_compat=_flag(_get(document, "source_compat")),
        hide_empty=_flag(_get(document, "hide_empty")),
    )


def _parse_version(raw: Mapping[str, Any], position: int, base_dir: Path | None) -> VersionSpec:
    changelog = _get(raw, "changelog")
    if isinstance(changelog, bool):
        changelog_value: str | None = "on" if changelog else "off"
    elif changelog is None:
        changelog_value = None
    else:
        text = str(changelog).strip()
        changelog_value = text.lower() if text.lower() in {"on", "off"} else text

    return VersionSpec(
        number=str(_get(raw, "number")),
        position=position,
        source=_path(_get(raw, "source"), base_dir),
        installed=_path(_get(raw, "installed"), base_dir),
        changelog=changelog_value,
        headers_diff=_flag(_get(raw, "headers_diff")),
        pkg_diff=_flag(_get(raw, "pkg_diff")),
        abi_view=_flag(_get(raw, "abi_view")),
    )


def _parse_mode(value: Any) -> ProfileMode:
    if value is None or value == "":
        return ProfileMode.DEFAULT
    try:
        return ProfileMode(str(value).lower())
    except ValueError as exc:
        raise ProfileError(f"unknown profile mode '{value}'") from exc


def _parse_scm(document: Mapping[str, Any]) -> ScmKind | None:
    value = document.get("scm")
    if value:
        try:
            return ScmKind(str(value).lower())
        except ValueError as exc:
            raise ProfileError(f"unknown source code repository type '{value}'") from exc
    # legacy profiles mark the SCM by the presence of a "Git"/"Svn"/"Hg" key
    for kind in ScmKind:
        if kind.value.capitalize() in document:
            return kind
    return None


def _get(mapping: Mapping[str, Any], key: str) -> Any:
    if key in mapping:
        return mapping[key]
    for legacy in _LEGACY_KEYS.get(key, ()):
        if legacy in mapping:
            return mapping[legacy]
    return None


def _flag(value: Any, *, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in {"on", "1", "true", "yes"}


def _str_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Sequence):
        return tuple(str(item) for item in value)
    raise ProfileError(f"expected a list of strings, got {type(value).__name__}")


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _path(value: Any, base_dir: Path | None) -> Path | None:
    if value is None or str(value).strip() == "":
        return None
    candidate = Path(str(value)).expanduser()
    if not candidate.is_absolute() and base_dir is not None:
        candidate = base_dir / candidate
    return candidate


__all__ = [
    "LIVE_VERSION",
    "LibraryProfile",
    "ProfileMode",
    "ScmKind",
    "VersionSpec",
    "load_profile",
    "matches_entry",
    "parse_profile",
]
