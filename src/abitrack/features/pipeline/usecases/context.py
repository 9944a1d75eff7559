"""Summary: Immutable per-run context and the on-disk output layout.
Why: Build options are decided once by the caller and handed to every
component instead of being read from a shared option bag."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from abitrack.config.paths import library_store_path
from abitrack.config.profile import LibraryProfile, VersionSpec
from abitrack.config.settings import TrackerSettings
from abitrack.features.store.domain.keys import Stage

DUMP_FILE_NAME: Final[str] = "ABI.dump"
META_FILE_NAME: Final[str] = "meta.json"

# per-library output trees below the data directory
REPORT_ROOTS: Final[tuple[str, ...]] = (
    "abi_dump",
    "compat_report",
    "objects_report",
    "headers_diff",
    "package_diff",
    "changelog",
    "graph",
)


@dataclass(frozen=True, slots=True)
class OutputLayout:
    """Where each stage writes its files for one library."""

    root: Path
    library: str

    def _tree(self, name: str) -> Path:
        return self.root / name / self.library

    @property
    def store_path(self) -> Path:
        return library_store_path(self.root, self.library)

    @property
    def scratch_dir(self) -> Path:
        return self.root / "tmp" / self.library

    def report_dirs(self) -> list[Path]:
        return [self._tree(name) for name in REPORT_ROOTS]

    @property
    def dump_root(self) -> Path:
        return self._tree("abi_dump")

    @property
    def compat_root(self) -> Path:
        return self._tree("compat_report")

    def dump_dir(self, version: str) -> Path:
        return self.dump_root / version

    def dump_path(self, version: str, item: str) -> Path:
        return self.dump_dir(version) / item / DUMP_FILE_NAME

    def compat_dir(self, older: str, newer: str) -> Path:
        return self.compat_root / older / newer

    def compare_dir(self, older: str, newer: str, item: str) -> Path:
        return self.compat_dir(older, newer) / item

    def objects_report_dir(self, older: str, newer: str) -> Path:
        return self._tree("objects_report") / older / newer

    def headers_diff_dir(self, older: str, newer: str) -> Path:
        return self._tree("headers_diff") / older / newer

    def package_diff_dir(self, older: str, newer: str) -> Path:
        return self._tree("package_diff") / older / newer

    def changelog_dir(self, version: str) -> Path:
        return self._tree("changelog") / version

    @property
    def graph_dir(self) -> Path:
        return self._tree("graph")


@dataclass(frozen=True, slots=True)
class RunContext:
    """Everything a build run needs to know, fixed at construction."""

    profile: LibraryProfile
    settings: TrackerSettings
    rebuild: bool = False
    target_version: str | None = None
    target_stage: Stage | None = None
    regen_dump: bool = False
    workers: int = 1
    layout: OutputLayout = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "layout", OutputLayout(self.settings.data_dir, self.profile.name))

    @property
    def library(self) -> str:
        return self.profile.name

    @property
    def explicit_target(self) -> bool:
        """Both a version and a stage were requested explicitly."""

        return self.target_version is not None and self.target_stage is not None

    def targets(self, stage: Stage) -> bool:
        return self.target_stage is None or self.target_stage == stage

    def selects(self, spec: VersionSpec) -> bool:
        return self.target_version is None or spec.number == self.target_version

    def selected_versions(self) -> list[VersionSpec]:
        return [spec for spec in self.profile.versions if self.selects(spec)]


__all__ = [
    "DUMP_FILE_NAME",
    "META_FILE_NAME",
    "OutputLayout",
    "REPORT_ROOTS",
    "RunContext",
]
