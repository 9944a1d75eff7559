"""End-to-end runs of ``PipelineOrchestrator`` against fake tools."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from abitrack.features.store import (
    UPSTREAM_MARKER_KEY,
    ArtifactKey,
    ArtifactStore,
    DateRecord,
    HeadersDiffRecord,
    PackageDiffRecord,
    PairCompareRecord,
    PairSummaryRecord,
    Stage,
)
from abitrack.platform.tools import CompareSummary

if TYPE_CHECKING:
    from conftest import FakeToolbox, LibraryWorkspace

LIBZ = "lib/libz.so.1"
MINIZIP = "lib/libminizip.so.1"


def _install_history(workspace: LibraryWorkspace, *versions: str) -> None:
    for version in versions:
        _ = workspace.install(version, LIBZ, MINIZIP)


def _summary(store: ArtifactStore, older: str, newer: str) -> PairSummaryRecord | None:
    return store.get_typed(ArtifactKey.for_pair(Stage.ABIREPORT, older, newer), PairSummaryRecord)


def test_first_run_builds_everything_second_run_nothing(
    workspace: LibraryWorkspace,
    toolbox_factory: Callable[[], FakeToolbox],
) -> None:
    """A repeated build with no changes invokes no external tool."""

    _install_history(workspace, "1.1", "1.0")
    context = workspace.context(workspace.profile(["1.1", "1.0"]))

    first = toolbox_factory()
    orchestrator, store = workspace.run(context, first)

    assert first.calls["dump"] == 4
    assert first.calls["compare"] == 2
    assert orchestrator.stats.failed == 0
    summary = _summary(store, "1.0", "1.1")
    assert summary is not None
    assert summary.backward_compatibility == 100.0
    assert Path(summary.summary_path or "").is_file()
    store.close()

    second = toolbox_factory()
    orchestrator, _ = workspace.run(context, second)

    assert second.total_calls == 0
    assert orchestrator.stats.built == 0
    assert orchestrator.stats.failed == 0


def test_oldest_version_has_no_pair(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    _install_history(workspace, "1.2", "1.1", "1.0")
    context = workspace.context(workspace.profile(["1.2", "1.1", "1.0"]))

    _, store = workspace.run(context, toolbox)

    assert sorted(store.scopes(Stage.ABIREPORT)) == ["1.0|1.1", "1.1|1.2"]
    assert toolbox.calls["compare"] == 4


def test_failed_compare_is_retried_next_run(
    workspace: LibraryWorkspace,
    toolbox_factory: Callable[[], FakeToolbox],
) -> None:
    """Only the failed object is compared again; the summary is rebuilt."""

    _install_history(workspace, "1.1", "1.0")
    context = workspace.context(workspace.profile(["1.1", "1.0"]))

    broken = toolbox_factory()
    broken.checker.fail_objects = {"libminizip.so.1"}
    orchestrator, store = workspace.run(context, broken)

    assert orchestrator.stats.failed == 1
    assert orchestrator.stats.failures[0].startswith("compare:1.0→1.1:")
    assert len(store.keys(Stage.COMPARE)) == 1
    store.close()

    fixed = toolbox_factory()
    orchestrator, store = workspace.run(context, fixed)

    assert fixed.calls["compare"] == 1
    assert fixed.calls["dump"] == 0
    assert orchestrator.stats.failed == 0
    assert len(store.keys(Stage.COMPARE)) == 2


def test_interrupt_keeps_finished_items(
    workspace: LibraryWorkspace,
    toolbox_factory: Callable[[], FakeToolbox],
) -> None:
    """Work finished before Ctrl-C is persisted and not redone."""

    _install_history(workspace, "1.1", "1.0")
    context = workspace.context(workspace.profile(["1.1", "1.0"]))
    scope = ArtifactKey.for_pair(Stage.COMPARE, "1.0", "1.1").scope

    interrupted = toolbox_factory()
    interrupted.checker.interrupt_on = "libz.so.1"
    with pytest.raises(KeyboardInterrupt):
        _ = workspace.run(context, interrupted)

    store = workspace.open_store()
    kept = [record for _, record in store.items(Stage.COMPARE, scope)]
    assert [record.object_old for record in kept if isinstance(record, PairCompareRecord)] == [MINIZIP]
    assert _summary(store, "1.0", "1.1") is None
    assert len(store.keys(Stage.ABIDUMP)) == 4
    store.close()

    resumed = toolbox_factory()
    _, store = workspace.run(context, resumed)

    assert resumed.calls["dump"] == 0
    assert resumed.calls["compare"] == 1
    assert _summary(store, "1.0", "1.1") is not None


def test_removed_object_lowers_compatibility(
    workspace: LibraryWorkspace,
    toolbox: FakeToolbox,
) -> None:
    """Losing an object with half of the symbols halves the score."""

    _ = workspace.install("1.0", LIBZ, MINIZIP)
    _ = workspace.install("1.1", LIBZ)
    context = workspace.context(workspace.profile(["1.1", "1.0"]))

    _, store = workspace.run(context, toolbox)

    summary = _summary(store, "1.0", "1.1")
    assert summary is not None
    assert summary.backward_compatibility == 50.0
    assert summary.objects_removed == 1
    report = json.loads(Path(summary.summary_path or "").read_text())
    assert report["removed_objects"] == [MINIZIP]


def test_affected_symbols_are_weighted(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    _install_history(workspace, "1.1", "1.0")
    toolbox.dumper.symbols = {"libz.so.1": 30, "libminizip.so.1": 10}
    toolbox.checker.results = {"libz.so.1": CompareSummary(affected=10.0, removed=3, total_problems=1)}
    context = workspace.context(workspace.profile(["1.1", "1.0"]))

    _, store = workspace.run(context, toolbox)

    summary = _summary(store, "1.0", "1.1")
    assert summary is not None
    assert summary.backward_compatibility == 92.5
    assert summary.removed == 3


def test_missing_version_is_reported_once(
    workspace: LibraryWorkspace,
    toolbox: FakeToolbox,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Every stage skips a version without an installed tree; one error is logged."""

    _ = workspace.install("1.0", LIBZ)
    context = workspace.context(workspace.profile(["1.1", "1.0"]))

    with caplog.at_level(logging.DEBUG, logger="abitrack"):
        _, store = workspace.run(context, toolbox)

    messages = [record.getMessage() for record in caplog.records]
    assert messages.count("1.1 is not installed") == 1
    assert _summary(store, "1.0", "1.1") is None
    assert toolbox.calls["compare"] == 0


def test_target_version_limits_the_run(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    """The selected version and the dumps its pair needs are built; nothing else."""

    _install_history(workspace, "1.2", "1.1", "1.0")
    context = workspace.context(workspace.profile(["1.2", "1.1", "1.0"]), target_version="1.1")

    _, store = workspace.run(context, toolbox)

    assert toolbox.calls["dump"] == 4
    assert toolbox.calls["compare"] == 2
    assert store.get(ArtifactKey.for_version(Stage.DATE, "1.2")) is None
    assert store.get(ArtifactKey.for_version(Stage.DATE, "1.1")) is not None
    assert _summary(store, "1.1", "1.2") is None


def test_target_stage_runs_only_that_stage(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    _install_history(workspace, "1.1", "1.0")
    context = workspace.context(workspace.profile(["1.1", "1.0"]), target_stage=Stage.DATE)

    _, store = workspace.run(context, toolbox)

    assert toolbox.calls["latest_entry_date"] == 2
    assert toolbox.calls["dump"] == 0
    record = store.get_typed(ArtifactKey.for_version(Stage.DATE, "1.0"), DateRecord)
    assert record is not None
    assert record.date == "2020-01-01 12:00"


def test_rebuild_of_target_redumps_both_sides(
    workspace: LibraryWorkspace,
    toolbox_factory: Callable[[], FakeToolbox],
) -> None:
    """``--rebuild -v 1.2`` regenerates 1.2, the older side's dumps and the pair."""

    _install_history(workspace, "1.2", "1.1", "1.0")
    profile = workspace.profile(["1.2", "1.1", "1.0"])
    store = workspace.run(workspace.context(profile), toolbox_factory())[1]
    store.close()

    rebuilt = toolbox_factory()
    _, store = workspace.run(
        workspace.context(profile, rebuild=True, target_version="1.2"),
        rebuilt,
    )

    assert rebuilt.calls["dump"] == 4
    assert rebuilt.calls["compare"] == 2
    assert rebuilt.calls["latest_entry_date"] == 1
    assert _summary(store, "1.0", "1.1") is not None


def test_live_update_rebuilds_only_live_artifacts(
    workspace: LibraryWorkspace,
    toolbox_factory: Callable[[], FakeToolbox],
) -> None:
    """A new upstream marker invalidates items touching ``current`` only."""

    _install_history(workspace, "current", "1.0")
    context = workspace.context(workspace.profile(["current", "1.0"], scm="git"))

    first = toolbox_factory()
    _, store = workspace.run(context, first, marker="100")
    assert first.calls["last_commit_date"] == 1
    assert first.calls["write_log"] == 1
    assert store.get_meta(UPSTREAM_MARKER_KEY) == "100"
    store.close()

    unchanged = toolbox_factory()
    _, store = workspace.run(context, unchanged, marker="100")
    assert unchanged.total_calls == 0
    store.close()

    updated = toolbox_factory()
    _, store = workspace.run(context, updated, marker="200")

    assert updated.calls["dump"] == 2
    assert updated.calls["compare"] == 2
    assert updated.calls["last_commit_date"] == 1
    assert updated.calls["latest_entry_date"] == 0
    assert store.get_meta(UPSTREAM_MARKER_KEY) == "200"
    summary = _summary(store, "1.0", "current")
    assert summary is not None
    assert summary.upstream_marker == "200"


def test_interrupted_live_update_resumes_without_redoing_work(
    workspace: LibraryWorkspace,
    toolbox_factory: Callable[[], FakeToolbox],
) -> None:
    """Live items checkpointed with the new marker stay fresh after Ctrl-C."""

    _install_history(workspace, "current", "1.0")
    context = workspace.context(workspace.profile(["current", "1.0"], scm="git"))
    workspace.run(context, toolbox_factory(), marker="100")[1].close()

    interrupted = toolbox_factory()
    interrupted.checker.interrupt_on = "libz.so.1"
    with pytest.raises(KeyboardInterrupt):
        _ = workspace.run(context, interrupted, marker="200")
    assert interrupted.calls["dump"] == 2

    store = workspace.open_store()
    assert store.get_meta(UPSTREAM_MARKER_KEY) == "100"
    store.close()

    resumed = toolbox_factory()
    _, store = workspace.run(context, resumed, marker="200")

    assert resumed.calls["dump"] == 0
    assert resumed.calls["compare"] == 1
    assert resumed.calls["last_commit_date"] == 0
    assert resumed.calls["write_log"] == 0
    assert store.get_meta(UPSTREAM_MARKER_KEY) == "200"
    summary = _summary(store, "1.0", "current")
    assert summary is not None
    assert summary.upstream_marker == "200"


def test_live_date_without_scm_fails(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    _install_history(workspace, "current", "1.0")
    toolbox.scm = None  # pyright: ignore[reportAttributeAccessIssue]
    context = workspace.context(workspace.profile(["current", "1.0"]), target_stage=Stage.DATE)

    orchestrator, _ = workspace.run(context, toolbox)

    assert orchestrator.stats.failures == ["date:current"]


def test_headers_and_package_diffs(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    """Enabled per newer version; identical headers are left out."""

    _ = workspace.install(
        "1.0",
        LIBZ,
        headers={"include/zlib.h": "int deflate(void);", "include/zconf.h": "#define Z 1"},
    )
    _ = workspace.install(
        "1.1",
        LIBZ,
        headers={"include/zlib.h": "int deflate(int);", "include/zconf.h": "#define Z 1"},
    )
    profile = workspace.profile(
        ["1.1", "1.0"],
        {"1.1": {"headers_diff": True, "pkg_diff": True}},
    )

    _, store = workspace.run(workspace.context(profile), toolbox)

    headers = store.get_typed(ArtifactKey.for_pair(Stage.HEADERSDIFF, "1.0", "1.1"), HeadersDiffRecord)
    package = store.get_typed(ArtifactKey.for_pair(Stage.PKGDIFF, "1.0", "1.1"), PackageDiffRecord)
    assert headers is not None
    assert headers.total == 1
    assert toolbox.calls["header_diff"] == 1
    assert json.loads(Path(headers.path).read_text())["headers"] == ["zlib.h"]
    assert package is not None
    assert package.changed == 4.2
    assert Path(package.path).is_file()


def test_diffs_are_skipped_unless_enabled(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    _install_history(workspace, "1.1", "1.0")

    _, store = workspace.run(workspace.context(workspace.profile(["1.1", "1.0"])), toolbox)

    assert toolbox.calls["header_diff"] == 0
    assert toolbox.calls["package_diff"] == 0
    assert store.keys(Stage.PKGDIFF) == []


def test_hide_empty_drops_unchanged_reports(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    _install_history(workspace, "1.1", "1.0")
    toolbox.checker.results = {"libz.so.1": CompareSummary(affected=1.0, added=2)}
    context = workspace.context(workspace.profile(["1.1", "1.0"], hide_empty=True))

    _, store = workspace.run(context, toolbox)

    records = {
        record.object_old: record
        for _, record in store.items(Stage.COMPARE, "1.0|1.1")
        if isinstance(record, PairCompareRecord)
    }
    assert records[MINIZIP].report_path is None
    assert records[LIBZ].report_path is not None
    assert Path(records[LIBZ].report_path or "").is_file()


def test_parallel_workers_build_the_same_result(
    workspace: LibraryWorkspace,
    toolbox: FakeToolbox,
) -> None:
    _install_history(workspace, "1.2", "1.1", "1.0")
    context = workspace.context(workspace.profile(["1.2", "1.1", "1.0"]), workers=4)

    orchestrator, store = workspace.run(context, toolbox)

    assert orchestrator.stats.failed == 0
    assert toolbox.calls["dump"] == 6
    assert toolbox.calls["compare"] == 4
    assert len(store.keys(Stage.COMPARE)) == 4


def test_skipped_headers_list_is_shared_by_parallel_compares(
    workspace: LibraryWorkspace,
    toolbox: FakeToolbox,
) -> None:
    """The list is written once per run and every comparison points at it."""

    _install_history(workspace, "1.2", "1.1", "1.0")
    profile = workspace.profile(["1.2", "1.1", "1.0"], skip_headers=["internal.h", "private/*.h"])
    context = workspace.context(profile, workers=4)

    orchestrator, _ = workspace.run(context, toolbox)

    headers_list = orchestrator.compare_options.skip_headers_list
    assert headers_list is not None
    assert headers_list.read_text() == "internal.h\nprivate/*.h"
    assert len(toolbox.checker.options) == 4
    assert {options.skip_headers_list for options in toolbox.checker.options} == {headers_list}


def test_version_without_objects_fails(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    """An installed tree with no shared objects fails its dump and pair."""

    _ = workspace.install("1.1", LIBZ)
    _ = workspace.install("1.0")
    context = workspace.context(workspace.profile(["1.1", "1.0"]))

    orchestrator, store = workspace.run(context, toolbox)

    assert "abidump:1.0" in orchestrator.stats.failures
    assert "abireport:1.0→1.1" in orchestrator.stats.failures
    assert toolbox.calls["compare"] == 0
    assert _summary(store, "1.0", "1.1") is None


def test_failed_dump_is_not_stored(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    _install_history(workspace, "1.1", "1.0")
    toolbox.dumper.fail_objects = {"libminizip.so.1"}
    context = workspace.context(workspace.profile(["1.1", "1.0"]))

    orchestrator, store = workspace.run(context, toolbox)

    assert orchestrator.stats.failed == 2
    assert len(store.keys(Stage.ABIDUMP)) == 2
    assert toolbox.calls["compare"] == 1
    assert len(list(context.layout.dump_root.glob("*/*/ABI.dump"))) == 2


def test_progress_callback_receives_built_items(
    workspace: LibraryWorkspace,
    toolbox: FakeToolbox,
) -> None:
    _ = workspace.install("1.0", LIBZ)
    seen: list[tuple[str, str]] = []
    context = workspace.context(workspace.profile(["1.0"]), target_stage=Stage.ABIDUMP)

    _ = workspace.run(context, toolbox, progress_callback=lambda stage, item: seen.append((stage, item)))

    assert seen == [("abidump", LIBZ)]
