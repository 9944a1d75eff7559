"""Application service for building and maintaining ABI timelines.

This layer centralizes construction of the store, tool adapters and pipeline
so the CLI only translates arguments into a request.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import final

from abitrack.config.config import ABI_CC_MIN_VERSION, ABI_DUMPER_MIN_VERSION
from abitrack.config.profile import LibraryProfile, load_profile
from abitrack.config.settings import TrackerSettings, load_settings
from abitrack.features.pipeline import (
    CleanupPlan,
    MaintenanceService,
    PipelineOrchestrator,
    PipelineTools,
    RunContext,
    RunStats,
)
from abitrack.features.pipeline.usecases.orchestrator import ProgressCallback
from abitrack.features.store import (
    ArtifactKey,
    ArtifactStore,
    PairSummaryRecord,
    Stage,
)
from abitrack.features.store.usecases.ports import DatabaseManagerPort
from abitrack.platform.db.daos.maintenance_dao import MaintenanceDAO
from abitrack.platform.db.db_manager import DatabaseManager
from abitrack.platform.logging import logger
from abitrack.platform.tools import (
    AbiDumper,
    ArchiveInspector,
    ComplianceChecker,
    GraphRenderer,
    HeaderDiffTool,
    PackageDiffTool,
    ScmClient,
    SonameReader,
    ToolRunner,
    require_minimum,
)


@dataclass(frozen=True)
class TrackRequest:
    """Input parameters for one invocation.

    Attributes:
        profile_path: Library profile (JSON).
        rebuild: Regenerate cached artifacts of the selected versions.
        target_version: Restrict the run to one version.
        target_stage: Restrict the run to one stage.
        regen_dump: Regenerate the older dump of every compared pair.
        workers: Worker threads; None uses the configured default.
    """

    profile_path: Path
    rebuild: bool = False
    target_version: str | None = None
    target_stage: Stage | None = None
    regen_dump: bool = False
    workers: int | None = None


@dataclass(frozen=True, slots=True)
class PairStatus:
    older: str
    newer: str
    summary: PairSummaryRecord


@dataclass(frozen=True, slots=True)
class StoreStatus:
    """Snapshot of what a library's store currently holds."""

    library: str
    store_path: Path
    counts: dict[str, int] = field(default_factory=dict)
    pairs: list[PairStatus] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


@final
class TrackService:
    """Application service that wires the pipeline for one library profile."""

    def __init__(
        self,
        *,
        settings_factory: Callable[[], TrackerSettings] | None = None,
        profile_loader: Callable[[Path], LibraryProfile] | None = None,
        db_factory: Callable[[Path], DatabaseManagerPort] | None = None,
        store_factory: Callable[[DatabaseManagerPort], ArtifactStore] | None = None,
        runner_factory: Callable[[TrackerSettings], ToolRunner] | None = None,
        tools_factory: Callable[[RunContext, ToolRunner], PipelineTools] | None = None,
        orchestrator_factory: Callable[..., PipelineOrchestrator] | None = None,
        maintenance_factory: Callable[..., MaintenanceDAO] | None = None,
        verify_tools: bool = True,
    ) -> None:
        """Create a service with overridable infrastructure factories.

        Tests inject fakes for the tools and the database while production
        code relies on the subprocess adapters and SQLite.
        """

        self._settings_factory: Callable[[], TrackerSettings] = settings_factory or load_settings
        self._profile_loader: Callable[[Path], LibraryProfile] = profile_loader or load_profile
        self._db_factory: Callable[[Path], DatabaseManagerPort] = db_factory or DatabaseManager
        self._store_factory: Callable[[DatabaseManagerPort], ArtifactStore] = (
            store_factory or ArtifactStore
        )
        self._runner_factory: Callable[[TrackerSettings], ToolRunner] = (
            runner_factory or _default_runner
        )
        self._tools_factory: Callable[[RunContext, ToolRunner], PipelineTools] = (
            tools_factory or build_tools
        )
        self._orchestrator_factory: Callable[..., PipelineOrchestrator] = (
            orchestrator_factory or PipelineOrchestrator
        )
        self._maintenance_factory: Callable[..., MaintenanceDAO] = (
            maintenance_factory or MaintenanceDAO
        )
        self._verify_tools: bool = verify_tools

    def build_context(self, request: TrackRequest) -> RunContext:
        settings = self._settings_factory()
        profile = self._profile_loader(request.profile_path)
        workers = request.workers if request.workers is not None else settings.max_workers
        return RunContext(
            profile=profile,
            settings=settings,
            rebuild=request.rebuild,
            target_version=request.target_version,
            target_stage=request.target_stage,
            regen_dump=request.regen_dump,
            workers=max(workers, 1),
        )

    @contextmanager
    def open_store(self, context: RunContext) -> Iterator[ArtifactStore]:
        """Open, load and repair the library's store; close it on exit."""

        store = self._store_factory(self._db_factory(context.layout.store_path))
        try:
            _ = store.load()
            _ = store.repair()
            yield store
        finally:
            store.close()

    def build(
        self,
        request: TrackRequest,
        progress_callback: ProgressCallback | None = None,
    ) -> RunStats:
        """Run the incremental build for the request's profile.

        Raises:
            ModuleError: If a required analysis tool is missing or too old.
        """

        context = self.build_context(request)
        runner = self._runner_factory(context.settings)
        tool_versions = self._check_tools(runner, context.settings) if self._verify_tools else {}
        tools = self._tools_factory(context, runner)

        with self.open_store(context) as store:
            orchestrator = self._orchestrator_factory(
                context,
                store,
                tools,
                tool_versions=tool_versions,
                progress_callback=progress_callback,
            )
            stats = orchestrator.run()
        logger.debug("External tool invocations: %d", runner.invocations)
        return stats

    def clear(self, request: TrackRequest) -> bool:
        context = self.build_context(request)
        with self.open_store(context) as store:
            return MaintenanceService(context, store).clear()

    def clean_unused(self, request: TrackRequest, *, force: bool = False) -> CleanupPlan:
        context = self.build_context(request)
        with self.open_store(context) as store:
            return MaintenanceService(context, store).clean_unused(force=force)

    def status(self, request: TrackRequest) -> StoreStatus:
        """Count stored artifacts per stage and collect the pair summaries."""

        context = self.build_context(request)
        db_manager = self._db_factory(context.layout.store_path)
        store = self._store_factory(db_manager)
        try:
            _ = store.load()
            conn = db_manager.conn
            counts = self._maintenance_factory(conn).count_by_stage() if conn is not None else {}
            pairs: list[PairStatus] = []
            for older, newer in context.profile.pairs():
                summary = store.get_typed(
                    ArtifactKey.for_pair(Stage.ABIREPORT, older.number, newer.number),
                    PairSummaryRecord,
                )
                if summary is not None:
                    pairs.append(PairStatus(older.number, newer.number, summary))
        finally:
            store.close()
        return StoreStatus(
            library=context.library,
            store_path=context.layout.store_path,
            counts=counts,
            pairs=pairs,
        )

    @staticmethod
    def _check_tools(runner: ToolRunner, settings: TrackerSettings) -> dict[str, str | None]:
        commands = settings.tools
        return {
            "abi-dumper": require_minimum(
                runner, commands.abi_dumper, ABI_DUMPER_MIN_VERSION, "ABI Dumper"
            ),
            "abi-compliance-checker": require_minimum(
                runner,
                commands.abi_compliance_checker,
                ABI_CC_MIN_VERSION,
                "ABI Compliance Checker",
            ),
        }


def _default_runner(settings: TrackerSettings) -> ToolRunner:
    return ToolRunner(settings.tool_timeout)


def build_tools(context: RunContext, runner: ToolRunner) -> PipelineTools:
    """Subprocess-backed adapters configured from the settings and profile."""

    commands = context.settings.tools
    scm_kind = context.profile.scm
    scm = None
    if scm_kind is not None:
        scm = ScmClient(runner, scm_kind, executable=getattr(commands, scm_kind.value))
    return PipelineTools(
        dumper=AbiDumper(
            runner,
            executable=commands.abi_dumper,
            counter=commands.abi_compliance_checker,
        ),
        checker=ComplianceChecker(runner, executable=commands.abi_compliance_checker),
        soname_reader=SonameReader(runner, executable=commands.objdump),
        archives=ArchiveInspector(),
        header_diff=HeaderDiffTool(runner, executable=commands.rfcdiff),
        package_diff=PackageDiffTool(runner, executable=commands.pkgdiff),
        graph=GraphRenderer(runner, executable=commands.gnuplot),
        scm=scm,
    )


__all__ = [
    "PairStatus",
    "StoreStatus",
    "TrackRequest",
    "TrackService",
    "build_tools",
]
