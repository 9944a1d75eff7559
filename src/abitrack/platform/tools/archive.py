"""Where: platform/tools/archive.py
What: List and unpack release archives (tar.* and zip).
Why: Archival versions take their release date and changelog from the
source package.
"""

from __future__ import annotations

import re
import tarfile
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Final, final

from abitrack.platform.filesystem import ensure_directory
from abitrack.shared.errors import ToolInvocationError

_TAR: Final[re.Pattern[str]] = re.compile(r"\.(tar\.\w+|tar|tgz|tbz2|txz)$", re.IGNORECASE)
_ZIP: Final[re.Pattern[str]] = re.compile(r"\.(zip|jar)$", re.IGNORECASE)
_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M"


def archive_kind(path: Path) -> str | None:
    """Return "tar", "zip" or None for an unsupported file name."""

    if _TAR.search(path.name):
        return "tar"
    if _ZIP.search(path.name):
        return "zip"
    return None


@final
class ArchiveInspector:
    def latest_entry_date(self, archive: Path) -> str | None:
        """Newest modification time among regular files, as ``YYYY-MM-DD HH:MM``."""

        stamps: list[datetime] = []
        try:
            match archive_kind(archive):
                case "tar":
                    with tarfile.open(archive) as bundle:
                        stamps = [
                            datetime.fromtimestamp(member.mtime)
                            for member in bundle.getmembers()
                            if not member.isdir()
                        ]
                case "zip":
                    with zipfile.ZipFile(archive) as bundle:
                        stamps = [
                            datetime(*info.date_time)
                            for info in bundle.infolist()
                            if not info.is_dir()
                        ]
                case _:
                    return None
        except (OSError, tarfile.TarError, zipfile.BadZipFile, ValueError) as exc:
            raise ToolInvocationError("archive", f"can't list '{archive.name}': {exc}") from exc

        if not stamps:
            return None
        return max(stamps).strftime(_DATE_FORMAT)

    def extract(self, archive: Path, destination: Path) -> Path:
        """Unpack ``archive`` into ``destination`` and return it.

        Raises:
            ToolInvocationError: For unknown formats or broken archives.
        """

        kind = archive_kind(archive)
        if kind is None:
            raise ToolInvocationError("archive", f"unknown package format '{archive.name}'")

        _ = ensure_directory(destination)
        try:
            if kind == "tar":
                with tarfile.open(archive) as bundle:
                    bundle.extractall(destination, filter="data")
            else:
                with zipfile.ZipFile(archive) as bundle:
                    bundle.extractall(destination)
        except (OSError, tarfile.TarError, zipfile.BadZipFile) as exc:
            raise ToolInvocationError(
                "archive", f"failed to extract package '{archive.name}': {exc}"
            ) from exc
        return destination


__all__ = ["ArchiveInspector", "archive_kind"]
