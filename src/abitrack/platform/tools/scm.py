"""Where: platform/tools/scm.py
What: Read the live checkout's update marker, last commit date and recent log.
Why: The live version has no archive; its freshness and metadata come from
the working copy.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final, final

from abitrack.config.profile import ScmKind
from abitrack.platform.filesystem import write_text_file
from abitrack.shared.errors import ToolInvocationError

from .runner import ToolRunner

LOG_LIMIT: Final[int] = 100

_SECONDS_DATE: Final[re.Pattern[str]] = re.compile(r" (\d+-\d+-\d+ \d+:\d+:\d+) ")
_MINUTES_DATE: Final[re.Pattern[str]] = re.compile(r" (\d+-\d+-\d+ \d+:\d+) ")


def update_marker(kind: ScmKind | None, source: Path | None) -> str | None:
    """Modification time of the file a pull or update touches.

    Returns None when the checkout or its head file is missing.
    """

    if kind is None or source is None or not source.is_dir():
        return None

    head: Path | None = None
    match kind:
        case ScmKind.GIT:
            head = source / ".git" / "refs" / "heads" / "master"
            if not head.is_file():
                head = source / ".git" / "FETCH_HEAD"
            if not head.is_file():
                head = None
        case ScmKind.SVN:
            head = source / ".svn" / "wc.db"
            if not head.is_file():
                head = None
        case ScmKind.HG:
            head = source / ".hg" / "store"
            if not head.exists():
                head = None

    if head is None:
        return None
    return str(int(head.stat().st_mtime))


@final
class ScmClient:
    """Commands run inside the live checkout."""

    def __init__(
        self,
        runner: ToolRunner,
        kind: ScmKind,
        *,
        executable: str | None = None,
    ) -> None:
        self._runner: ToolRunner = runner
        self.kind: ScmKind = kind
        self.executable: str = executable or kind.value

    def last_commit_date(self, source: Path) -> str | None:
        match self.kind:
            case ScmKind.GIT:
                args = ["log", "-1", "--date=iso"]
                pattern = _SECONDS_DATE
            case ScmKind.SVN:
                args = ["log", "-l1"]
                pattern = _SECONDS_DATE
            case ScmKind.HG:
                args = ["log", "--limit", "1", "--template", "date: {date|isodate}"]
                pattern = _MINUTES_DATE

        result = self._runner.run([self.executable, *args], cwd=source, tool=self.executable)
        # hg's template output has no trailing blank
        found = pattern.search(result.stdout + " ")
        return found.group(1) if found else None

    def write_log(self, source: Path, output: Path) -> Path:
        """Write the last :data:`LOG_LIMIT` log entries to ``output``."""

        match self.kind:
            case ScmKind.GIT:
                args = ["log", f"-{LOG_LIMIT}", "--date=iso"]
            case ScmKind.SVN:
                args = ["log", f"-l{LOG_LIMIT}"]
            case ScmKind.HG:
                args = ["log", "--limit", str(LOG_LIMIT)]

        result = self._runner.run([self.executable, *args], cwd=source, tool=self.executable)
        if not result.ok:
            raise ToolInvocationError(
                self.executable,
                result.stderr.strip() or "can't read the log",
                returncode=result.returncode,
            )
        write_text_file(output, result.stdout + "\n...")
        return output


__all__ = ["LOG_LIMIT", "ScmClient", "update_marker"]
