"""src/abitrack/features/store/domain/records.py
Where: Store feature domain layer.
What: Typed records persisted for each pipeline stage.
Why: Give the store an explicit schema with forward-compatible defaults, so
rows written by older releases decode without migration code.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar, Self


@dataclass(frozen=True, slots=True, kw_only=True)
class ArtifactRecord:
    """Base record. ``upstream_marker`` is the live source marker at build time."""

    record_type: ClassVar[str] = "artifact"

    upstream_marker: str | None = None

    def artifact_paths(self) -> tuple[Path, ...]:
        """Files on disk that must exist for this record to stay valid."""
        return ()

    def to_payload(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> Self:
        """Decode a payload, ignoring unknown keys and defaulting missing ones."""

        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {key: value for key, value in payload.items() if key in known}
        return cls(**kwargs)


@dataclass(frozen=True, slots=True, kw_only=True)
class DateRecord(ArtifactRecord):
    record_type: ClassVar[str] = "date"

    date: str


@dataclass(frozen=True, slots=True, kw_only=True)
class SonameRecord(ArtifactRecord):
    """Sonames of every object in a version; ``None`` marks an object without one."""

    record_type: ClassVar[str] = "soname"

    sonames: dict[str, str | None] = field(default_factory=dict)
    sover: str | None = None
    installed_root: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ChangelogRecord(ArtifactRecord):
    """Extracted changelog. ``path`` is None when the version has none."""

    record_type: ClassVar[str] = "changelog"

    path: str | None = None

    @property
    def is_off(self) -> bool:
        return self.path is None

    def artifact_paths(self) -> tuple[Path, ...]:
        return () if self.path is None else (Path(self.path),)


@dataclass(frozen=True, slots=True, kw_only=True)
class ABIDumpRecord(ArtifactRecord):
    record_type: ClassVar[str] = "abidump"

    path: str
    object: str
    lang: str | None = None
    total_symbols: int = 0
    # symbol count after the checker's skip filters, computed on first use
    total_symbols_filtered: int | None = None
    tool_version: str | None = None
    installed_root: str | None = None

    def artifact_paths(self) -> tuple[Path, ...]:
        return (Path(self.path),)


@dataclass(frozen=True, slots=True, kw_only=True)
class PairCompareRecord(ArtifactRecord):
    """Comparator output for one mapped object pair.

    ``report_path`` is None when an empty report was discarded.
    """

    record_type: ClassVar[str] = "compare"

    object_old: str
    object_new: str
    affected: float = 0.0
    added: int = 0
    removed: int = 0
    total_problems: int = 0
    report_path: str | None = None
    meta_path: str | None = None
    source_affected: float | None = None
    source_total_problems: int | None = None
    source_report_path: str | None = None

    def artifact_paths(self) -> tuple[Path, ...]:
        return () if self.meta_path is None else (Path(self.meta_path),)


@dataclass(frozen=True, slots=True, kw_only=True)
class PairSummaryRecord(ArtifactRecord):
    record_type: ClassVar[str] = "abireport"

    backward_compatibility: float = 100.0
    source_backward_compatibility: float | None = None
    added: int = 0
    removed: int = 0
    total_problems: int = 0
    source_total_problems: int | None = None
    objects_added: int = 0
    objects_removed: int = 0
    objects_renamed: int = 0
    changed_soname: int = 0
    objects_added_symbols: int = 0
    objects_removed_symbols: int = 0
    total_objects: int = 0
    summary_path: str | None = None
    compare_items: list[str] = field(default_factory=list)

    def artifact_paths(self) -> tuple[Path, ...]:
        return () if self.summary_path is None else (Path(self.summary_path),)


@dataclass(frozen=True, slots=True, kw_only=True)
class HeadersDiffRecord(ArtifactRecord):
    record_type: ClassVar[str] = "headersdiff"

    path: str
    total: int = 0

    def artifact_paths(self) -> tuple[Path, ...]:
        return (Path(self.path),)


@dataclass(frozen=True, slots=True, kw_only=True)
class PackageDiffRecord(ArtifactRecord):
    record_type: ClassVar[str] = "pkgdiff"

    path: str
    changed: float | None = None

    def artifact_paths(self) -> tuple[Path, ...]:
        return (Path(self.path),)


@dataclass(frozen=True, slots=True, kw_only=True)
class GraphRecord(ArtifactRecord):
    """Cumulative exported-symbol series, oldest version first."""

    record_type: ClassVar[str] = "graph"

    data_path: str
    image_path: str | None = None
    points: list[list[object]] = field(default_factory=list)

    def artifact_paths(self) -> tuple[Path, ...]:
        return (Path(self.data_path),)


RECORD_TYPES: dict[str, type[ArtifactRecord]] = {
    cls.record_type: cls
    for cls in (
        DateRecord,
        SonameRecord,
        ChangelogRecord,
        ABIDumpRecord,
        PairCompareRecord,
        PairSummaryRecord,
        HeadersDiffRecord,
        PackageDiffRecord,
        GraphRecord,
    )
}


def decode_record(record_type: str, payload: dict[str, object]) -> ArtifactRecord:
    """Rebuild a record from its persisted form.

    Raises:
        KeyError: If the record type is unknown.
        TypeError: If a required field is missing.
    """

    return RECORD_TYPES[record_type].from_payload(payload)


__all__ = [
    "ABIDumpRecord",
    "ArtifactRecord",
    "ChangelogRecord",
    "DateRecord",
    "GraphRecord",
    "HeadersDiffRecord",
    "PackageDiffRecord",
    "PairCompareRecord",
    "PairSummaryRecord",
    "RECORD_TYPES",
    "SonameRecord",
    "decode_record",
]
