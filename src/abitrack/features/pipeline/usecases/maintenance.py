"""Summary: Housekeeping for a library's output tree and store.
Why: Versions get dropped from profiles over time; their dumps and reports
stay on disk until someone asks for them to be removed."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import final

from abitrack.features.store.domain.keys import ArtifactKey, Stage
from abitrack.features.store.usecases.artifact_store import ArtifactStore
from abitrack.platform.filesystem import remove_tree
from abitrack.platform.logging import logger

from .context import RunContext

# stages whose scope is an "older|newer" pair
_PAIR_STAGES: tuple[Stage, ...] = (
    Stage.COMPARE,
    Stage.ABIREPORT,
    Stage.HEADERSDIFF,
    Stage.PKGDIFF,
)
_VERSION_STAGES: tuple[Stage, ...] = (
    Stage.DATE,
    Stage.SONAME,
    Stage.CHANGELOG,
    Stage.ABIDUMP,
)


@dataclass(slots=True)
class CleanupPlan:
    """What ``clean-unused`` found, and whether it was removed."""

    versions: list[str] = field(default_factory=list)
    pairs: list[tuple[str, str]] = field(default_factory=list)
    paths: list[Path] = field(default_factory=list)
    removed: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.versions or self.pairs)


@final
class MaintenanceService:
    """Find and delete data of versions no longer listed in the profile."""

    def __init__(self, context: RunContext, store: ArtifactStore) -> None:
        self._context: RunContext = context
        self._store: ArtifactStore = store

    def find_unused(self) -> CleanupPlan:
        profile = self._context.profile
        layout = self._context.layout
        known = set(profile.numbers())
        adjacent = {(older.number, newer.number) for older, newer in profile.pairs()}

        versions: set[str] = set()
        for stage in _VERSION_STAGES:
            versions.update(scope for scope in self._store.scopes(stage) if scope not in known)
        versions.update(_child_names(layout.dump_root) - known)

        pairs: set[tuple[str, str]] = set()
        for stage in _PAIR_STAGES:
            for scope in self._store.scopes(stage):
                pair = ArtifactKey(stage, scope).versions
                if len(pair) == 2 and (pair[0], pair[1]) not in adjacent:
                    pairs.add((pair[0], pair[1]))
        compat_root = layout.compat_root
        for older in _child_names(compat_root):
            for newer in _child_names(compat_root / older):
                if (older, newer) not in adjacent:
                    pairs.add((older, newer))

        plan = CleanupPlan(
            versions=sorted(versions),
            pairs=sorted(pairs),
        )
        for version in plan.versions:
            plan.paths.extend(
                path
                for path in (layout.dump_dir(version), layout.changelog_dir(version))
                if path.exists()
            )
        for older, newer in plan.pairs:
            plan.paths.extend(
                path
                for path in (
                    layout.compat_dir(older, newer),
                    layout.objects_report_dir(older, newer),
                    layout.headers_diff_dir(older, newer),
                    layout.package_diff_dir(older, newer),
                )
                if path.exists()
            )
        return plan

    def clean_unused(self, *, force: bool = False) -> CleanupPlan:
        """List unused data; delete it (files and store entries) when ``force``."""

        plan = self.find_unused()
        for path in plan.paths:
            logger.info("Unused: %s", path)
        if plan.is_empty:
            logger.info("Nothing to clean for %s", self._context.library)
            return plan
        if not force:
            logger.warning("Use --force to remove unused data")
            return plan

        for path in plan.paths:
            _ = remove_tree(path)
        for version in plan.versions:
            for stage in _VERSION_STAGES:
                _ = self._store.invalidate_scope(stage, version)
        for older, newer in plan.pairs:
            for stage in _PAIR_STAGES:
                scope = ArtifactKey.for_pair(stage, older, newer).scope
                _ = self._store.invalidate_scope(stage, scope)
        plan.removed = self._store.persist()
        return plan

    def clear(self) -> bool:
        """Remove every artifact of the library, on disk and in the store."""

        layout = self._context.layout
        cleared = self._store.clear()
        for directory in (*layout.report_dirs(), layout.scratch_dir):
            if remove_tree(directory):
                logger.debug("Removed %s", directory)
        logger.info("Cleared all data of %s", self._context.library)
        return cleared


def _child_names(directory: Path) -> set[str]:
    if not directory.is_dir():
        return set()
    return {entry.name for entry in directory.iterdir() if entry.is_dir()}


__all__ = ["CleanupPlan", "MaintenanceService"]
