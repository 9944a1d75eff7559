"""Where: platform/tools/abi_dumper.py
What: Adapter around the ABI dumper and the checker's symbol counter.
Why: Keep command construction and dump-file scraping out of the pipeline.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, final

from abitrack.platform.filesystem import ensure_parent_directory
from abitrack.shared.errors import ToolInvocationError

from .runner import ToolRunner

_LANGUAGE: Final[re.Pattern[str]] = re.compile(r"'Language'\s*=>\s*'([^']*)'")
_LANGUAGE_JSON: Final[re.Pattern[str]] = re.compile(r'"Language"\s*:\s*"([^"]*)"')
_COUNT: Final[re.Pattern[str]] = re.compile(r"(\d+)\s*$")


@dataclass(frozen=True, slots=True)
class DumpOptions:
    """Filters applied while dumping.

    ``public_headers`` limits the dump to symbols declared in installed
    headers; kernel dumps are restricted to exported symbols instead.
    """

    public_headers: Path | None = None
    kernel: bool = False


@final
class AbiDumper:
    def __init__(
        self,
        runner: ToolRunner,
        *,
        executable: str = "abi-dumper",
        counter: str = "abi-compliance-checker",
    ) -> None:
        self._runner: ToolRunner = runner
        self.executable: str = executable
        self.counter: str = counter

    def dump(
        self,
        object_path: Path,
        version_label: str,
        output_path: Path,
        options: DumpOptions,
    ) -> bool:
        """Dump ``object_path`` to ``output_path``. Success is the file existing."""

        _ = ensure_parent_directory(output_path)
        command: list[str | Path] = [
            self.executable,
            object_path,
            "-output",
            output_path,
            "-lver",
            version_label,
        ]
        if options.kernel:
            command.append("-kernel-export")
        elif options.public_headers is not None:
            command.extend(["-public-headers", options.public_headers])

        _ = self._runner.run(command, tool="abi-dumper")
        return output_path.is_file()

    def count_symbols(self, dump_path: Path, extra_args: Sequence[str] = ()) -> int:
        """Total exported symbols in a dump, optionally after checker filters."""

        result = self._runner.run(
            [self.counter, "-count-symbols", dump_path, *extra_args],
            tool="abi-compliance-checker",
        )
        match = _COUNT.search(result.stdout.strip())
        if match is None:
            raise ToolInvocationError(
                "abi-compliance-checker",
                f"can't count symbols in {dump_path.name}",
                returncode=result.returncode,
            )
        return int(match.group(1))

    @staticmethod
    def read_language(dump_path: Path) -> str | None:
        """Implementation language recorded in the dump header."""

        try:
            with dump_path.open("r", encoding="utf-8", errors="replace") as handle:
                head = handle.read(65536)
        except OSError:
            return None
        match = _LANGUAGE.search(head) or _LANGUAGE_JSON.search(head)
        return match.group(1) if match else None


__all__ = ["AbiDumper", "DumpOptions"]
