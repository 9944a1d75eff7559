"""Summary: Ports describing the external tools the pipeline drives.
Why: Decouple the orchestrator from subprocess adapters so tests can pass
in-memory fakes and count invocations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from abitrack.platform.tools import CompareOptions, CompareOutcome, DumpOptions


@runtime_checkable
class DumpToolPort(Protocol):
    def dump(
        self,
        object_path: Path,
        version_label: str,
        output_path: Path,
        options: DumpOptions,
    ) -> bool:
        """Write an ABI dump; True when ``output_path`` was produced."""
        ...

    def count_symbols(self, dump_path: Path, extra_args: Sequence[str] = ()) -> int:
        """Count exported symbols in a dump."""
        ...

    def read_language(self, dump_path: Path) -> str | None:
        """Implementation language recorded in a dump."""
        ...


@runtime_checkable
class CompareToolPort(Protocol):
    def compare(
        self,
        old_dump: Path,
        new_dump: Path,
        report_dir: Path,
        options: CompareOptions,
        *,
        library: str,
    ) -> CompareOutcome:
        """Compare two dumps and parse the report summary."""
        ...


@runtime_checkable
class SonameReaderPort(Protocol):
    def read_soname(self, object_path: Path) -> str | None:
        ...


@runtime_checkable
class ScmClientPort(Protocol):
    def last_commit_date(self, source: Path) -> str | None:
        ...

    def write_log(self, source: Path, output: Path) -> Path:
        ...


@runtime_checkable
class ArchiveInspectorPort(Protocol):
    def latest_entry_date(self, archive: Path) -> str | None:
        ...

    def extract(self, archive: Path, destination: Path) -> Path:
        ...


@runtime_checkable
class HeaderDiffPort(Protocol):
    @property
    def available(self) -> bool:
        ...

    def diff(self, old_header: Path, new_header: Path) -> str:
        ...


@runtime_checkable
class PackageDiffPort(Protocol):
    def diff(self, old_source: Path, new_source: Path, report_path: Path) -> float | None:
        ...


@runtime_checkable
class GraphRendererPort(Protocol):
    def render(
        self,
        data_path: Path,
        image_path: Path,
        *,
        title: str,
        x_max: int,
        y_range: tuple[int, int],
    ) -> bool:
        ...


@dataclass(frozen=True, slots=True)
class PipelineTools:
    """Bundle of tool adapters handed to the orchestrator."""

    dumper: DumpToolPort
    checker: CompareToolPort
    soname_reader: SonameReaderPort
    archives: ArchiveInspectorPort
    header_diff: HeaderDiffPort
    package_diff: PackageDiffPort
    graph: GraphRendererPort
    scm: ScmClientPort | None = None


__all__ = [
    "ArchiveInspectorPort",
    "CompareToolPort",
    "DumpToolPort",
    "GraphRendererPort",
    "HeaderDiffPort",
    "PackageDiffPort",
    "PipelineTools",
    "ScmClientPort",
    "SonameReaderPort",
]
