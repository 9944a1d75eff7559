"""Where: platform/tools/compliance_checker.py
What: Adapter around the ABI compliance checker and its report summary line.
Why: The checker's HTML report starts with a machine-readable comment
(``affected:N;added:N;...``); that grammar is the only contract the pipeline
relies on, and all of its parsing lives here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final, final

from abitrack.platform.filesystem import ensure_directory
from abitrack.shared.errors import ToolInvocationError

from .runner import ToolRunner

BINARY_REPORT_NAME: Final[str] = "abi_compat_report.html"
SOURCE_REPORT_NAME: Final[str] = "src_compat_report.html"

_AFFECTED: Final[re.Pattern[str]] = re.compile(r"affected:(.+?);")
_ADDED: Final[re.Pattern[str]] = re.compile(r"added:(.+?);")
_REMOVED: Final[re.Pattern[str]] = re.compile(r"removed:(.+?);")
_BINARY_PROBLEMS: Final[re.Pattern[str]] = re.compile(
    r"(\w+_problems_\w+|changed_constants):(.+?);"
)
_SOURCE_PROBLEMS: Final[re.Pattern[str]] = re.compile(r"(\w+_problems_\w+):(.+?);")


@dataclass(frozen=True, slots=True)
class CompareSummary:
    """Counters from a report's first line."""

    affected: float = 0.0
    added: int = 0
    removed: int = 0
    total_problems: int = 0


@dataclass(frozen=True, slots=True)
class CompareOutcome:
    binary: CompareSummary
    binary_report: Path
    source: CompareSummary | None = None
    source_report: Path | None = None


@dataclass(frozen=True, slots=True)
class CompareOptions:
    """Checker filters derived from the library profile."""

    skip_symbols: Path | None = None
    skip_types: Path | None = None
    skip_internal_symbols: str | None = None
    skip_internal_types: str | None = None
    skip_headers_list: Path | None = None
    skip_typedef_uncover: bool = False
    kernel: bool = False
    source_compat: bool = False

    @property
    def has_filters(self) -> bool:
        """True when symbol counts depend on the filters below."""

        return bool(
            self.skip_symbols
            or self.skip_types
            or self.skip_internal_symbols
            or self.skip_internal_types
            or self.skip_headers_list
        )

    def filter_args(self) -> list[str]:
        args: list[str] = []
        if self.skip_symbols is not None:
            args.extend(["-skip-symbols", str(self.skip_symbols)])
        if self.skip_types is not None:
            args.extend(["-skip-types", str(self.skip_types)])
        if self.skip_internal_symbols:
            args.extend(["-skip-internal-symbols", self.skip_internal_symbols])
        if self.skip_internal_types:
            args.extend(["-skip-internal-types", self.skip_internal_types])
        if self.skip_headers_list is not None:
            args.extend(["-skip-headers", str(self.skip_headers_list)])
        if self.skip_typedef_uncover:
            args.append("-skip-typedef-uncover")
        return args


def _number(raw: str) -> float:
    try:
        return float(raw.strip())
    except ValueError:
        return 0.0


def parse_summary_line(line: str, *, source: bool = False) -> CompareSummary:
    """Parse the first line of a compatibility report.

    Every ``*_problems_*`` field is summed into ``total_problems``; binary
    reports also count ``changed_constants``. Missing fields read as zero.

    >>> parse_summary_line("verdict:incompatible;affected:12.5;added:3;removed:1;"
    ...                    "type_problems_high:2;interface_problems_low:1;")
    CompareSummary(affected=12.5, added=3, removed=1, total_problems=3)
    """

    affected = _AFFECTED.search(line)
    added = _ADDED.search(line)
    removed = _REMOVED.search(line)
    pattern = _SOURCE_PROBLEMS if source else _BINARY_PROBLEMS
    total = sum(_number(match.group(2)) for match in pattern.finditer(line))

    return CompareSummary(
        affected=_number(affected.group(1)) if affected else 0.0,
        added=int(_number(added.group(1))) if added else 0,
        removed=int(_number(removed.group(1))) if removed else 0,
        total_problems=int(total),
    )


def read_first_line(path: Path) -> str:
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        return handle.readline()


@final
class ComplianceChecker:
    def __init__(self, runner: ToolRunner, *, executable: str = "abi-compliance-checker") -> None:
        self._runner: ToolRunner = runner
        self.executable: str = executable

    def compare(
        self,
        old_dump: Path,
        new_dump: Path,
        report_dir: Path,
        options: CompareOptions,
        *,
        library: str,
    ) -> CompareOutcome:
        """Compare two dumps, writing reports under ``report_dir``.

        Raises:
            ToolInvocationError: If an expected report was not produced.
        """

        _ = ensure_directory(report_dir)
        binary_report = report_dir / BINARY_REPORT_NAME
        source_report = report_dir / SOURCE_REPORT_NAME

        command: list[str | Path] = [
            self.executable,
            "-l",
            library,
            "-old",
            old_dump,
            "-new",
            new_dump,
            "-bin",
            "-bin-report-path",
            binary_report,
        ]
        if options.source_compat:
            command.extend(["-src", "-src-report-path", source_report])
        command.extend(options.filter_args())
        if options.kernel:
            command.extend(["-limit-affected", "2"])

        result = self._runner.run(command, tool="abi-compliance-checker")

        if not binary_report.is_file() or (options.source_compat and not source_report.is_file()):
            raise ToolInvocationError(
                "abi-compliance-checker",
                "can't create compatibility report",
                returncode=result.returncode,
            )

        binary = parse_summary_line(read_first_line(binary_report))
        source = (
            parse_summary_line(read_first_line(source_report), source=True)
            if options.source_compat
            else None
        )
        return CompareOutcome(
            binary=binary,
            binary_report=binary_report,
            source=source,
            source_report=source_report if options.source_compat else None,
        )


__all__ = [
    "BINARY_REPORT_NAME",
    "CompareOptions",
    "CompareOutcome",
    "CompareSummary",
    "ComplianceChecker",
    "SOURCE_REPORT_NAME",
    "parse_summary_line",
    "read_first_line",
]
