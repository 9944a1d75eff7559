"""Tests for subprocess execution and tool version checks."""

from __future__ import annotations

import subprocess

import pytest
from pytest_mock import MockerFixture

from abitrack.platform.tools import ToolRunner, compare_versions, require_minimum, tool_version
from abitrack.shared.errors import ModuleError, ToolInvocationError, ToolTimeoutError


def _completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


def test_run_captures_output_and_counts(mocker: MockerFixture) -> None:
    """Commands are run without a shell and every call is counted."""

    fake_run = mocker.Mock(return_value=_completed("ok\n", returncode=3))
    runner = ToolRunner(30.0, run=fake_run)

    result = runner.run(["objdump", "-p", "libz.so"])

    assert result.returncode == 3
    assert not result.ok
    assert result.stdout == "ok\n"
    assert result.command == "objdump -p libz.so"
    assert runner.invocations == 1
    args, kwargs = fake_run.call_args
    assert args[0] == ["objdump", "-p", "libz.so"]
    assert kwargs["timeout"] == 30.0
    assert kwargs["capture_output"] is True


def test_timeout_raises_tool_timeout(mocker: MockerFixture) -> None:
    """An expired timeout becomes a recoverable tool error."""

    fake_run = mocker.Mock(side_effect=subprocess.TimeoutExpired(cmd="abi-dumper", timeout=5))
    runner = ToolRunner(5.0, run=fake_run)

    with pytest.raises(ToolTimeoutError, match="abi-dumper: timed out after 5s"):
        _ = runner.run(["abi-dumper", "libz.so"])


def test_missing_executable_raises_invocation_error(mocker: MockerFixture) -> None:
    """A missing executable is reported with the tool name."""

    runner = ToolRunner(run=mocker.Mock(side_effect=FileNotFoundError()))

    with pytest.raises(ToolInvocationError, match='rfcdiff: can\'t find "rfcdiff"'):
        _ = runner.run(["rfcdiff", "a.h", "b.h"])


def test_non_positive_timeout_disables_limit() -> None:
    assert ToolRunner(0).timeout is None
    assert ToolRunner(-1.0).timeout is None


@pytest.mark.parametrize(
    "left, right, expected",
    [
        ("1.1", "1.1", 0),
        ("1.0.9", "1.1", -1),
        ("2.3", "2.2", 1),
        ("1.10", "1.9", 1),
        ("1.1", "1.1.0", -1),
    ],
)
def test_compare_versions(left: str, right: str, expected: int) -> None:
    """Dotted versions compare numerically, part by part."""

    assert compare_versions(left, right) == expected


def test_tool_version_reads_dumpversion(mocker: MockerFixture) -> None:
    runner = ToolRunner(run=mocker.Mock(return_value=_completed("1.2\n")))

    assert tool_version(runner, "abi-dumper") == "1.2"


def test_require_minimum(mocker: MockerFixture) -> None:
    """Missing or outdated tools abort the run with a module error."""

    new_enough = ToolRunner(run=mocker.Mock(return_value=_completed("2.3\n")))
    too_old = ToolRunner(run=mocker.Mock(return_value=_completed("1.99\n")))
    missing = ToolRunner(run=mocker.Mock(side_effect=FileNotFoundError()))

    assert require_minimum(new_enough, "abi-compliance-checker", "2.2", "ABI Compliance Checker") == "2.3"
    with pytest.raises(ModuleError, match="should be 2.2 or newer"):
        _ = require_minimum(too_old, "abi-compliance-checker", "2.2", "ABI Compliance Checker")
    with pytest.raises(ModuleError, match="cannot find 'abi-dumper'") as excinfo:
        _ = require_minimum(missing, "abi-dumper", "1.1", "ABI Dumper")
    assert excinfo.value.exit_code == 9
