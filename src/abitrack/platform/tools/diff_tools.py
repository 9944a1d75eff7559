"""Header and package differs."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final, final

from abitrack.platform.filesystem import ensure_parent_directory

from .runner import ToolRunner

_CHANGED: Final[re.Pattern[str]] = re.compile(r"CHANGED\s*\((.+?)%\)")


@final
class HeaderDiffTool:
    def __init__(self, runner: ToolRunner, *, executable: str = "rfcdiff") -> None:
        self._runner: ToolRunner = runner
        self.executable: str = executable

    @property
    def available(self) -> bool:
        return self._runner.available(self.executable)

    def diff(self, old_header: Path, new_header: Path) -> str:
        """Return the rendered diff of two header files (empty on failure)."""

        result = self._runner.run(
            [self.executable, "--width", "75", "--stdout", old_header, new_header],
            tool="rfcdiff",
        )
        return result.stdout


@final
class PackageDiffTool:
    def __init__(self, runner: ToolRunner, *, executable: str = "pkgdiff") -> None:
        self._runner: ToolRunner = runner
        self.executable: str = executable

    def diff(self, old_source: Path, new_source: Path, report_path: Path) -> float | None:
        """Write a package diff report; returns the changed percentage if printed.

        Success is judged by the caller from the report file existing.
        """

        _ = ensure_parent_directory(report_path)
        result = self._runner.run(
            [self.executable, "-report-path", report_path, old_source, new_source],
            tool="pkgdiff",
        )
        match = _CHANGED.search(result.stdout)
        if match is None:
            return None
        try:
            return float(match.group(1))
        except ValueError:
            return None


__all__ = ["HeaderDiffTool", "PackageDiffTool"]
