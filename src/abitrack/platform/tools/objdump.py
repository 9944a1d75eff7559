"""Soname extraction through ``objdump -p``."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final, final

from .runner import ToolRunner

_SONAME: Final[re.Pattern[str]] = re.compile(r"SONAME\s+([^ \n]+)")


@final
class SonameReader:
    def __init__(self, runner: ToolRunner, *, executable: str = "objdump") -> None:
        self._runner: ToolRunner = runner
        self.executable: str = executable

    def read_soname(self, object_path: Path) -> str | None:
        """Return the DT_SONAME entry of ``object_path``, or None."""

        result = self._runner.run([self.executable, "-p", object_path], tool="objdump")
        match = _SONAME.search(result.stdout)
        return match.group(1).strip() if match else None


__all__ = ["SonameReader"]
