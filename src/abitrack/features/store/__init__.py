"""Artifact store feature: keys, records, persistence and staleness."""

from .domain.keys import BUILD_TARGETS, ArtifactKey, Stage, short_hash
from .domain.records import (
    ABIDumpRecord,
    ArtifactRecord,
    ChangelogRecord,
    DateRecord,
    GraphRecord,
    HeadersDiffRecord,
    PackageDiffRecord,
    PairCompareRecord,
    PairSummaryRecord,
    SonameRecord,
)
from .usecases import UPSTREAM_MARKER_KEY, ArtifactStore, StalenessOracle, live_source_changed

__all__ = [
    "ABIDumpRecord",
    "ArtifactKey",
    "ArtifactRecord",
    "ArtifactStore",
    "BUILD_TARGETS",
    "ChangelogRecord",
    "DateRecord",
    "GraphRecord",
    "HeadersDiffRecord",
    "PackageDiffRecord",
    "PairCompareRecord",
    "PairSummaryRecord",
    "SonameRecord",
    "StalenessOracle",
    "Stage",
    "UPSTREAM_MARKER_KEY",
    "live_source_changed",
    "short_hash",
]
