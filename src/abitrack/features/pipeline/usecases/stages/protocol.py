"""Summary: The orchestrator surface the stage functions rely on.
Why: Stage modules stay free functions without importing the orchestrator."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Protocol, TypeVar

from abitrack.config.profile import VersionSpec
from abitrack.features.matching import ObjectIdentityResolver
from abitrack.features.pipeline.domain.object_scan import ObjectFilter
from abitrack.features.scoring import CompatibilityAggregator
from abitrack.features.store.domain.keys import ArtifactKey
from abitrack.features.store.domain.records import ABIDumpRecord, ArtifactRecord
from abitrack.features.store.usecases.artifact_store import ArtifactStore
from abitrack.platform.tools import CompareOptions

from ..context import RunContext
from ..ports import PipelineTools
from ..processing_types import ItemStatus, PipelineEvent, RunStats

T = TypeVar("T")


class PipelineLike(Protocol):
    context: RunContext
    store: ArtifactStore
    tools: PipelineTools
    stats: RunStats
    object_filter: ObjectFilter
    compare_options: CompareOptions
    resolver: ObjectIdentityResolver
    aggregator: CompatibilityAggregator

    def log_pipeline(
        self,
        level: int,
        event: PipelineEvent,
        message: str,
        *message_args: object,
        **context: object,
    ) -> None:
        ...

    def stage_start(self, stage: str, version: str | None = None, older: str | None = None) -> None:
        ...

    def process_item(
        self,
        key: ArtifactKey,
        build: Callable[[], ArtifactRecord | None],
        *,
        forced: bool | None = None,
        item_label: str | None = None,
    ) -> ItemStatus:
        ...

    def is_available(self, spec: VersionSpec) -> bool:
        ...

    def marker_for(self, spec: VersionSpec) -> str | None:
        ...

    def tool_version(self, tool: str) -> str | None:
        ...

    def claim(self, stage: str, version: str) -> bool:
        ...

    def claimed(self, stage: str, version: str) -> bool:
        ...

    def release(self, stage: str, version: str) -> None:
        ...

    def record_failed_dump(self, version: str, relative_path: str) -> None:
        ...

    def failed_dumps(self, version: str) -> frozenset[str]:
        ...

    def symbol_weight(self, key: ArtifactKey, record: ABIDumpRecord) -> int:
        ...

    def map_parallel(self, func: Callable[[T], object], items: Iterable[T]) -> None:
        ...


__all__ = ["PipelineLike"]
