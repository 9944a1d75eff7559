"""Tests for ``MaintenanceService``: unused data cleanup and clearing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from abitrack.features.pipeline import MaintenanceService, RunContext
from abitrack.features.store import Stage

if TYPE_CHECKING:
    from conftest import FakeToolbox, LibraryWorkspace


@pytest.fixture
def dropped_version(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> RunContext:
    """Build three versions, then return a context whose profile lost 1.1."""

    for version in ("1.2", "1.1", "1.0"):
        _ = workspace.install(version, "lib/libz.so.1")
    store = workspace.run(workspace.context(workspace.profile(["1.2", "1.1", "1.0"])), toolbox)[1]
    store.close()
    return workspace.context(workspace.profile(["1.2", "1.0"]))


def test_find_unused_lists_versions_and_pairs(
    workspace: LibraryWorkspace,
    dropped_version: RunContext,
) -> None:
    store = workspace.open_store()

    plan = MaintenanceService(dropped_version, store).find_unused()

    layout = dropped_version.layout
    assert plan.versions == ["1.1"]
    assert plan.pairs == [("1.0", "1.1"), ("1.1", "1.2")]
    assert layout.dump_dir("1.1") in plan.paths
    assert layout.compat_dir("1.0", "1.1") in plan.paths
    assert layout.objects_report_dir("1.1", "1.2") in plan.paths


def test_clean_unused_needs_force(workspace: LibraryWorkspace, dropped_version: RunContext) -> None:
    """Without ``force`` nothing is deleted."""

    store = workspace.open_store()

    plan = MaintenanceService(dropped_version, store).clean_unused()

    assert not plan.removed
    assert dropped_version.layout.dump_dir("1.1").is_dir()
    assert "1.1" in store.scopes(Stage.ABIDUMP)


def test_clean_unused_with_force_removes_files_and_records(
    workspace: LibraryWorkspace,
    dropped_version: RunContext,
) -> None:
    store = workspace.open_store()

    plan = MaintenanceService(dropped_version, store).clean_unused(force=True)

    assert plan.removed
    assert all(not path.exists() for path in plan.paths)
    assert "1.1" not in store.scopes(Stage.ABIDUMP)
    assert store.scopes(Stage.ABIREPORT) == []
    assert dropped_version.layout.dump_dir("1.2").is_dir()

    store.close()
    reopened = workspace.open_store()
    assert MaintenanceService(dropped_version, reopened).find_unused().is_empty


def test_nothing_to_clean(workspace: LibraryWorkspace, toolbox: FakeToolbox) -> None:
    _ = workspace.install("1.0", "lib/libz.so.1")
    context = workspace.context(workspace.profile(["1.0"]))
    store = workspace.run(context, toolbox)[1]

    plan = MaintenanceService(context, store).clean_unused(force=True)

    assert plan.is_empty
    assert not plan.removed


def test_clear_removes_everything(workspace: LibraryWorkspace, dropped_version: RunContext) -> None:
    store = workspace.open_store()

    assert MaintenanceService(dropped_version, store).clear()

    assert len(store) == 0
    assert all(not directory.exists() for directory in dropped_version.layout.report_dirs())
    store.close()
    assert workspace.open_store().load() == 0
