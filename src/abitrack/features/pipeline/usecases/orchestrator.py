"""src/abitrack/features/pipeline/usecases/orchestrator.py
Where: Pipeline feature usecases layer.
What: Drive the build stages over a library's versions and adjacent pairs.
Why: Centralise the skip/build/fail bookkeeping, checkpointing and
interrupt handling that every stage shares.
Assumptions: - The store was loaded and repaired by the caller.
Trade-offs: - Worker threads share the store; its lock serialises writes, so
  parallelism pays off only for the long-running external tools.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any, Final, TypeVar, final

from abitrack.config.profile import VersionSpec
from abitrack.features.matching import ObjectIdentityResolver
from abitrack.features.pipeline.domain.object_scan import ObjectFilter
from abitrack.features.scoring import CompatibilityAggregator
from abitrack.features.store.domain.keys import ArtifactKey, Stage
from abitrack.features.store.domain.records import ABIDumpRecord, ArtifactRecord
from abitrack.features.store.usecases.artifact_store import UPSTREAM_MARKER_KEY, ArtifactStore
from abitrack.features.store.usecases.staleness import StalenessOracle
from abitrack.platform.filesystem import write_text_file
from abitrack.platform.logging import logger
from abitrack.platform.tools import CompareOptions, update_marker
from abitrack.shared.errors import ToolInvocationError

from .context import RunContext
from .ports import PipelineTools
from .processing_types import ItemStatus, PipelineEvent, RunStats
from .stages.graph import build_graph
from .stages.pair_stages import create_abi_report, create_package_diff, diff_headers
from .stages.version_stages import create_changelog, detect_date, detect_soname, dump_version

T = TypeVar("T")

SKIP_HEADERS_FILE_NAME: Final[str] = "headers.list"

ProgressCallback = Callable[[str, str], None]


@final
class PipelineOrchestrator:
    """Incremental build of every artifact a library profile asks for."""

    context: RunContext
    store: ArtifactStore
    tools: PipelineTools
    stats: RunStats
    object_filter: ObjectFilter
    compare_options: CompareOptions
    resolver: ObjectIdentityResolver
    aggregator: CompatibilityAggregator

    def __init__(
        self,
        context: RunContext,
        store: ArtifactStore,
        tools: PipelineTools,
        *,
        oracle: StalenessOracle | None = None,
        resolver: ObjectIdentityResolver | None = None,
        aggregator: CompatibilityAggregator | None = None,
        marker_provider: Callable[[], str | None] | None = None,
        tool_versions: Mapping[str, str | None] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        profile = context.profile
        self.context = context
        self.store = store
        self.tools = tools
        self.oracle: StalenessOracle = oracle or StalenessOracle(store)
        self.resolver = resolver or ObjectIdentityResolver(kernel_mode=profile.kernel_mode)
        self.aggregator = aggregator or CompatibilityAggregator()
        self.stats = RunStats(context.library)
        self.object_filter = ObjectFilter(profile.skip_objects, profile.check_objects)
        self.compare_options = CompareOptions(
            skip_symbols=profile.skip_symbols,
            skip_types=profile.skip_types,
            skip_internal_symbols=profile.skip_internal_symbols,
            skip_internal_types=profile.skip_internal_types,
            skip_typedef_uncover=profile.skip_typedef_uncover,
            kernel=profile.kernel_mode,
            source_compat=profile.source_compat,
        )
        self._marker_provider: Callable[[], str | None] = marker_provider or self._live_marker
        self._tool_versions: dict[str, str | None] = dict(tool_versions or {})
        self._progress: ProgressCallback | None = progress_callback

        self._lock = threading.Lock()
        self._claims: set[tuple[str, str]] = set()
        self._failed_dumps: dict[str, set[str]] = {}
        self._unavailable: set[str] = set()
        self._marker: str | None = None

    # ------------------------------------------------------------------
    # Hooks used by the stage functions
    # ------------------------------------------------------------------

    def log_pipeline(
        self,
        level: int,
        event: PipelineEvent,
        message: str,
        *message_args: object,
        **context: Any,
    ) -> None:
        extra: dict[str, Any] = {"pipeline_event": event.value}
        for key, value in context.items():
            extra[key] = str(value) if isinstance(value, Path) else value
        logger.log(level, message, *message_args, extra=extra, stacklevel=2)

    def stage_start(self, stage: str, version: str | None = None, older: str | None = None) -> None:
        self.log_pipeline(
            logging.DEBUG,
            PipelineEvent.STAGE_START,
            "Stage %s",
            stage,
            stage=str(stage),
            version=version,
            older_version=older,
        )

    def process_item(
        self,
        key: ArtifactKey,
        build: Callable[[], ArtifactRecord | None],
        *,
        forced: bool | None = None,
        item_label: str | None = None,
    ) -> ItemStatus:
        """Build ``key`` unless its cached record is still fresh.

        A recoverable tool failure drops the key so the item is retried by the
        next run; the store is checkpointed after every built or failed item.
        """

        if forced is None:
            forced = self._forced(key)
        versions = key.versions
        extra: dict[str, Any] = {
            "stage": str(key.stage),
            "version": versions[-1] if versions else None,
            "older_version": versions[0] if len(versions) == 2 else None,
            "item": item_label,
        }

        live_changed = self.oracle.record_outdated(key, self._marker)
        if not self.oracle.needs_rebuild(key, forced, live_changed):
            self.stats.record(ItemStatus.SKIPPED)
            self.log_pipeline(logging.DEBUG, PipelineEvent.ITEM_SKIPPED, "Up to date", **extra)
            return ItemStatus.SKIPPED

        if self._progress is not None:
            self._progress(str(key.stage), item_label or key.scope)

        try:
            record = build()
        except ToolInvocationError as exc:
            _ = self.store.invalidate(key)
            _ = self.store.persist()
            self.stats.record(ItemStatus.FAILED, str(key))
            self.log_pipeline(
                logging.ERROR,
                PipelineEvent.ITEM_FAILED,
                "Failed to build %s: %s",
                key,
                exc,
                error_message=str(exc),
                **extra,
            )
            return ItemStatus.FAILED

        if record is None:
            _ = self.store.invalidate(key)
            _ = self.store.persist()
            self.stats.record(ItemStatus.FAILED, str(key))
            return ItemStatus.FAILED

        self.store.put(key, record)
        _ = self.store.persist()
        self.stats.record(ItemStatus.BUILT)
        self.log_pipeline(logging.INFO, PipelineEvent.ITEM_BUILT, "Built %s", key, **extra)
        return ItemStatus.BUILT

    def is_available(self, spec: VersionSpec) -> bool:
        """True when ``spec`` has an installed tree; reports a missing one once."""

        installed = spec.installed
        if installed is not None and installed.is_dir():
            return True
        with self._lock:
            if spec.number in self._unavailable:
                return False
            self._unavailable.add(spec.number)
        self.log_pipeline(
            logging.ERROR,
            PipelineEvent.VERSION_UNAVAILABLE,
            "%s is not installed",
            spec.number,
            version=spec.number,
        )
        return False

    def marker_for(self, spec: VersionSpec) -> str | None:
        return self._marker if spec.is_live else None

    def tool_version(self, tool: str) -> str | None:
        return self._tool_versions.get(tool)

    def claim(self, stage: str, version: str) -> bool:
        """Mark ``stage`` as handled for ``version``; False if already claimed."""

        with self._lock:
            token = (str(stage), version)
            if token in self._claims:
                return False
            self._claims.add(token)
            return True

    def claimed(self, stage: str, version: str) -> bool:
        with self._lock:
            return (str(stage), version) in self._claims

    def release(self, stage: str, version: str) -> None:
        with self._lock:
            self._claims.discard((str(stage), version))

    def record_failed_dump(self, version: str, relative_path: str) -> None:
        with self._lock:
            self._failed_dumps.setdefault(version, set()).add(relative_path)

    def failed_dumps(self, version: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._failed_dumps.get(version, ()))

    def symbol_weight(self, key: ArtifactKey, record: ABIDumpRecord) -> int:
        """Exported symbol count of a dump, honouring the checker's skip filters."""

        if not self.compare_options.has_filters:
            return record.total_symbols
        if record.total_symbols_filtered is not None:
            return record.total_symbols_filtered
        try:
            count = self.tools.dumper.count_symbols(
                Path(record.path),
                self.compare_options.filter_args(),
            )
        except ToolInvocationError as exc:
            logger.warning("Can't count filtered symbols of %s: %s", record.object, exc)
            return record.total_symbols
        self.store.put(key, replace(record, total_symbols_filtered=count))
        return count

    def map_parallel(self, func: Callable[[T], object], items: Iterable[T]) -> None:
        work = list(items)
        if self.context.workers > 1 and len(work) > 1:
            with ThreadPoolExecutor(max_workers=self.context.workers) as executor:
                for _ in executor.map(func, work):
                    pass
            return
        for entry in work:
            _ = func(entry)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> RunStats:
        """Build everything selected by the run context.

        On KeyboardInterrupt the store is flushed before the interrupt
        propagates, so finished items are not rebuilt next time.
        """

        self.log_pipeline(
            logging.INFO,
            PipelineEvent.RUN_START,
            "Build started for %s",
            self.context.library,
            library=self.context.library,
        )
        try:
            self._run_stages()
        except KeyboardInterrupt:
            _ = self.store.persist()
            self.log_pipeline(
                logging.WARNING,
                PipelineEvent.RUN_INTERRUPTED,
                "Build interrupted for %s",
                self.context.library,
                **self.stats.summary_extra(),
            )
            raise

        _ = self.store.persist()
        self.log_pipeline(
            logging.INFO,
            PipelineEvent.RUN_COMPLETE,
            "Build complete for %s",
            self.context.library,
            **self.stats.summary_extra(),
        )
        return self.stats

    def _run_stages(self) -> None:
        ctx = self.context
        profile = ctx.profile

        if ctx.target_version is not None and profile.find(ctx.target_version) is None:
            logger.error("unknown version number '%s'", ctx.target_version)

        selected = ctx.selected_versions()
        for spec in selected:
            _ = self.is_available(spec)

        self._marker = self._marker_provider()
        if self.oracle.live_changed_since_last_run(self._marker):
            logger.info("Source repository of the live version was updated")

        self._write_skip_headers()

        if ctx.targets(Stage.DATE):
            for spec in selected:
                _ = detect_date(self, spec)

        if ctx.targets(Stage.SONAME):
            for spec in selected:
                _ = detect_soname(self, spec)

        if ctx.targets(Stage.CHANGELOG):
            for spec in selected:
                _ = create_changelog(self, spec)

        if ctx.targets(Stage.ABIDUMP):
            self.map_parallel(lambda spec: dump_version(self, spec), selected)

        if ctx.rebuild and ctx.target_version is not None and ctx.target_stage is None:
            target = profile.find(ctx.target_version)
            previous = profile.previous(target) if target is not None else None
            if previous is not None:
                # keep both sides of the rebuilt pair on the same dumper
                dump_version(self, previous, force=True)

        for newer in selected:
            older = profile.previous(newer)
            if older is None:
                continue
            if ctx.targets(Stage.ABIREPORT):
                _ = create_abi_report(self, older, newer)
            if ctx.targets(Stage.HEADERSDIFF):
                _ = diff_headers(self, older, newer)
            if ctx.targets(Stage.PKGDIFF):
                _ = create_package_diff(self, older, newer)

        live = profile.live_version
        if (
            live is not None
            and self._marker is not None
            and live.installed is not None
            and live.installed.is_dir()
        ):
            self.store.set_meta(UPSTREAM_MARKER_KEY, self._marker)
        _ = self.store.persist()

        if ctx.target_stage == Stage.GRAPH:
            _ = build_graph(self)

    def _write_skip_headers(self) -> None:
        """Write the skipped-headers list once; every comparison of the run reads it."""

        headers = self.context.profile.skip_headers
        if not headers:
            return
        path = self.context.layout.scratch_dir / SKIP_HEADERS_FILE_NAME
        write_text_file(path, "\n".join(headers))
        self.compare_options = replace(self.compare_options, skip_headers_list=path)

    def _forced(self, key: ArtifactKey) -> bool:
        """``--rebuild`` applies to items of the selected version only."""

        ctx = self.context
        if not ctx.rebuild:
            return False
        versions = key.versions
        return ctx.target_version is None or not versions or versions[-1] == ctx.target_version

    def _live_marker(self) -> str | None:
        live = self.context.profile.live_version
        if live is None:
            return None
        return update_marker(self.context.profile.scm, live.source)


__all__ = ["PipelineOrchestrator", "ProgressCallback"]
