"""Minimum-version checks for the required analysis tools."""

from __future__ import annotations

import re
from typing import Final

from abitrack.shared.errors import ModuleError, ToolInvocationError

from .runner import ToolRunner

_NUMBER: Final[re.Pattern[str]] = re.compile(r"\d+")


def compare_versions(left: str, right: str) -> int:
    """Compare two dotted-numeric versions; returns -1, 0 or 1.

    Non-numeric parts count as zero, and a shorter version sorts first
    when the shared parts are equal ("1.1" < "1.1.0").
    """

    if left == right:
        return 0
    left_parts = [_as_int(part) for part in left.split(".")]
    right_parts = [_as_int(part) for part in right.split(".")]
    for a, b in zip(left_parts, right_parts):
        if a != b:
            return -1 if a < b else 1
    if len(left_parts) != len(right_parts):
        return -1 if len(left_parts) < len(right_parts) else 1
    return 0


def _as_int(part: str) -> int:
    match = _NUMBER.match(part.strip())
    return int(match.group(0)) if match else 0


def tool_version(runner: ToolRunner, executable: str) -> str | None:
    """Return the output of ``<executable> -dumpversion``, or None."""

    try:
        result = runner.run([executable, "-dumpversion"])
    except ToolInvocationError:
        return None
    version = result.stdout.strip()
    return version or None


def require_minimum(runner: ToolRunner, executable: str, minimum: str, label: str) -> str:
    """Return the tool version, raising :class:`ModuleError` when unusable."""

    version = tool_version(runner, executable)
    if version is None:
        raise ModuleError(f"cannot find '{executable}'")
    if compare_versions(version, minimum) < 0:
        raise ModuleError(f"the version of {label} should be {minimum} or newer")
    return version


__all__ = ["compare_versions", "require_minimum", "tool_version"]
