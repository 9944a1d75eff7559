"""Tests for the checker and dumper adapters."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest
from pytest_mock import MockerFixture

from abitrack.platform.tools import (
    AbiDumper,
    CompareOptions,
    CompareSummary,
    ComplianceChecker,
    DumpOptions,
    ToolRunner,
    parse_summary_line,
)
from abitrack.shared.errors import ToolInvocationError


def _completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


def _value_after(argv: list[str], flag: str) -> str:
    return argv[argv.index(flag) + 1]


def test_parse_summary_line_sums_problem_fields() -> None:
    """All *_problems_* fields and changed constants add up."""

    line = (
        "<!-- kind:binary;verdict:incompatible;affected:12.5;added:3;removed:1;"
        "type_problems_high:2;type_problems_medium:0;interface_problems_low:1;"
        "changed_constants:4;tool_version:2.3 -->"
    )

    assert parse_summary_line(line) == CompareSummary(
        affected=12.5, added=3, removed=1, total_problems=7
    )
    assert parse_summary_line(line, source=True).total_problems == 3


def test_parse_summary_line_missing_fields_read_as_zero() -> None:
    assert parse_summary_line("<!-- verdict:compatible -->") == CompareSummary()


def test_compare_parses_written_reports(mocker: MockerFixture, tmp_path: Path) -> None:
    """Binary and source reports are both parsed when source checks are on."""

    def fake_run(argv: list[str], **_: Any) -> subprocess.CompletedProcess[str]:
        _ = Path(_value_after(argv, "-bin-report-path")).write_text(
            "<!-- affected:1.5;added:2;removed:0; -->\n<html/>"
        )
        _ = Path(_value_after(argv, "-src-report-path")).write_text(
            "<!-- affected:3;added:2;removed:0;type_problems_high:1; -->"
        )
        return _completed(returncode=1)

    runner = ToolRunner(run=mocker.Mock(side_effect=fake_run))
    checker = ComplianceChecker(runner)

    outcome = checker.compare(
        tmp_path / "old.dump",
        tmp_path / "new.dump",
        tmp_path / "report",
        CompareOptions(source_compat=True),
        library="libz",
    )

    assert outcome.binary.affected == 1.5
    assert outcome.source is not None
    assert outcome.source.total_problems == 1
    assert outcome.binary_report.parent == tmp_path / "report"


def test_compare_without_report_raises(mocker: MockerFixture, tmp_path: Path) -> None:
    """A missing report file means the comparison failed."""

    runner = ToolRunner(run=mocker.Mock(return_value=_completed(returncode=2)))

    with pytest.raises(ToolInvocationError, match="can't create compatibility report"):
        _ = ComplianceChecker(runner).compare(
            tmp_path / "a", tmp_path / "b", tmp_path / "r", CompareOptions(), library="libz"
        )


def test_filter_args_pass_headers_list(tmp_path: Path) -> None:
    """Skipped headers are passed as a prepared list file; nothing is written."""

    headers_list = tmp_path / "headers.list"
    options = CompareOptions(
        skip_symbols=Path("/profiles/skip.txt"),
        skip_headers_list=headers_list,
        skip_typedef_uncover=True,
    )

    args = options.filter_args()

    assert options.has_filters
    assert args[:2] == ["-skip-symbols", "/profiles/skip.txt"]
    assert "-skip-typedef-uncover" in args
    assert _value_after(args, "-skip-headers") == str(headers_list)
    assert not headers_list.exists()
    assert not CompareOptions().has_filters


def test_dump_builds_command_and_checks_output(mocker: MockerFixture, tmp_path: Path) -> None:
    """Public headers restrict the dump unless kernel export is requested."""

    calls: list[list[str]] = []

    def fake_run(argv: list[str], **_: Any) -> subprocess.CompletedProcess[str]:
        calls.append(argv)
        _ = Path(_value_after(argv, "-output")).write_text("$VAR1 = { 'Language' => 'C++' };")
        return _completed()

    dumper = AbiDumper(ToolRunner(run=mocker.Mock(side_effect=fake_run)))
    output = tmp_path / "dumps" / "ABI.dump"

    assert dumper.dump(tmp_path / "libz.so.1", "1.2", output, DumpOptions(public_headers=tmp_path))
    assert dumper.dump(tmp_path / "vmlinux", "5.0", output, DumpOptions(kernel=True))

    assert "-public-headers" in calls[0]
    assert "-kernel-export" in calls[1]
    assert "-public-headers" not in calls[1]
    assert AbiDumper.read_language(output) == "C++"


def test_count_symbols(mocker: MockerFixture, tmp_path: Path) -> None:
    """The symbol count is the trailing number of the counter's output."""

    ok = AbiDumper(ToolRunner(run=mocker.Mock(return_value=_completed("Total symbols: 1234\n"))))
    broken = AbiDumper(ToolRunner(run=mocker.Mock(return_value=_completed("error"))))

    assert ok.count_symbols(tmp_path / "ABI.dump", ["-skip-symbols", "x"]) == 1234
    with pytest.raises(ToolInvocationError, match="can't count symbols"):
        _ = broken.count_symbols(tmp_path / "ABI.dump")
