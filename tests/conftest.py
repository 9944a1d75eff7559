"""Shared fixtures: in-memory tool fakes and a throwaway library workspace.

The fakes implement the pipeline's tool ports, write the files the real tools
would leave behind, and count every call so tests can assert that a second
run performs no work.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from abitrack.config.profile import LIVE_VERSION, LibraryProfile, parse_profile
from abitrack.config.settings import ToolCommands, TrackerSettings
from abitrack.features.pipeline import PipelineOrchestrator, PipelineTools, RunContext
from abitrack.features.pipeline.domain.object_scan import ELF_MAGIC
from abitrack.features.store import ArtifactStore
from abitrack.platform.db.db_manager import DatabaseManager
from abitrack.platform.tools import CompareOptions, CompareOutcome, CompareSummary, DumpOptions
from abitrack.shared.errors import ToolInvocationError

LIBRARY = "libz"
DEFAULT_SYMBOLS = 10


def _object_of(dump_path: Path) -> str:
    """File name of the object a fake dump was made from."""

    return dump_path.read_text(encoding="utf-8").split()[1]


@dataclass
class FakeDumper:
    calls: Counter[str]
    symbols: dict[str, int] = field(default_factory=dict)
    fail_objects: set[str] = field(default_factory=set)

    def dump(self, object_path: Path, version_label: str, output_path: Path, options: DumpOptions) -> bool:
        self.calls["dump"] += 1
        if object_path.name in self.fail_objects:
            return False
        output_path.parent.mkdir(parents=True, exist_ok=True)
        _ = output_path.write_text(f"dump {object_path.name} {version_label}", encoding="utf-8")
        return True

    def count_symbols(self, dump_path: Path, extra_args: Any = ()) -> int:
        self.calls["count_symbols"] += 1
        return self.symbols.get(_object_of(dump_path), DEFAULT_SYMBOLS)

    def read_language(self, dump_path: Path) -> str | None:
        return "C"


@dataclass
class FakeChecker:
    calls: Counter[str]
    results: dict[str, CompareSummary] = field(default_factory=dict)
    fail_objects: set[str] = field(default_factory=set)
    interrupt_on: str | None = None
    options: list[CompareOptions] = field(default_factory=list)

    def compare(
        self,
        old_dump: Path,
        new_dump: Path,
        report_dir: Path,
        options: CompareOptions,
        *,
        library: str,
    ) -> CompareOutcome:
        self.calls["compare"] += 1
        self.options.append(options)
        name = _object_of(old_dump)
        if name == self.interrupt_on:
            raise KeyboardInterrupt
        if name in self.fail_objects:
            raise ToolInvocationError("abi-compliance-checker", "can't create compatibility report")
        report_dir.mkdir(parents=True, exist_ok=True)
        report = report_dir / "abi_compat_report.html"
        _ = report.write_text(f"<!-- {library} -->", encoding="utf-8")
        return CompareOutcome(binary=self.results.get(name, CompareSummary()), binary_report=report)


@dataclass
class FakeSonameReader:
    calls: Counter[str]
    sonames: dict[str, str] = field(default_factory=dict)

    def read_soname(self, object_path: Path) -> str | None:
        self.calls["read_soname"] += 1
        return self.sonames.get(object_path.name)


@dataclass
class FakeArchives:
    calls: Counter[str]
    date: str | None = "2020-01-01 12:00"
    changelog_text: str = "* fixed everything\n" * 40

    def latest_entry_date(self, archive: Path) -> str | None:
        self.calls["latest_entry_date"] += 1
        return self.date

    def extract(self, archive: Path, destination: Path) -> Path:
        self.calls["extract"] += 1
        top = destination / archive.name.removesuffix(".tar.gz")
        top.mkdir(parents=True, exist_ok=True)
        _ = (top / "NEWS").write_text(self.changelog_text, encoding="utf-8")
        return destination


@dataclass
class FakeScm:
    calls: Counter[str]
    date: str = "2024-02-03 04:05:06"

    def last_commit_date(self, source: Path) -> str | None:
        self.calls["last_commit_date"] += 1
        return self.date

    def write_log(self, source: Path, output: Path) -> Path:
        self.calls["write_log"] += 1
        output.parent.mkdir(parents=True, exist_ok=True)
        _ = output.write_text("r2 latest\nr1 initial\n...", encoding="utf-8")
        return output


@dataclass
class FakeHeaderDiff:
    calls: Counter[str]
    present: bool = True

    @property
    def available(self) -> bool:
        return self.present

    def diff(self, old_header: Path, new_header: Path) -> str:
        self.calls["header_diff"] += 1
        return f"<pre>- {old_header.read_text()}\n+ {new_header.read_text()}</pre>"


@dataclass
class FakePackageDiff:
    calls: Counter[str]

    def diff(self, old_source: Path, new_source: Path, report_path: Path) -> float | None:
        self.calls["package_diff"] += 1
        report_path.parent.mkdir(parents=True, exist_ok=True)
        _ = report_path.write_text("<html/>", encoding="utf-8")
        return 4.2


@dataclass
class FakeGraph:
    calls: Counter[str]

    def render(
        self,
        data_path: Path,
        image_path: Path,
        *,
        title: str,
        x_max: int,
        y_range: tuple[int, int],
    ) -> bool:
        self.calls["graph"] += 1
        _ = image_path.write_text("<svg/>", encoding="utf-8")
        return True


@dataclass
class FakeToolbox:
    """All fakes sharing one call counter."""

    calls: Counter[str] = field(default_factory=Counter)

    def __post_init__(self) -> None:
        self.dumper: FakeDumper = FakeDumper(self.calls)
        self.checker: FakeChecker = FakeChecker(self.calls)
        self.soname_reader: FakeSonameReader = FakeSonameReader(self.calls)
        self.archives: FakeArchives = FakeArchives(self.calls)
        self.scm: FakeScm = FakeScm(self.calls)
        self.header_diff: FakeHeaderDiff = FakeHeaderDiff(self.calls)
        self.package_diff: FakePackageDiff = FakePackageDiff(self.calls)
        self.graph: FakeGraph = FakeGraph(self.calls)

    @property
    def tools(self) -> PipelineTools:
        return PipelineTools(
            dumper=self.dumper,
            checker=self.checker,
            soname_reader=self.soname_reader,
            archives=self.archives,
            header_diff=self.header_diff,
            package_diff=self.package_diff,
            graph=self.graph,
            scm=self.scm,
        )

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


@dataclass
class LibraryWorkspace:
    """Installed trees, source packages and settings under one temp dir."""

    root: Path
    _stores: list[ArtifactStore] = field(default_factory=list)

    @property
    def settings(self) -> TrackerSettings:
        return TrackerSettings(
            data_dir=self.root / "data",
            log_file=self.root / "logs" / "abitrack.log",
            tool_timeout=10.0,
            max_workers=1,
            tools=ToolCommands(),
        )

    def installed(self, version: str) -> Path:
        return self.root / "installed" / version

    def source(self, version: str) -> Path:
        if version == LIVE_VERSION:
            return self.root / "src" / LIBRARY
        return self.root / "src" / f"{LIBRARY}-{version}.tar.gz"

    def install(self, version: str, *objects: str, headers: dict[str, str] | None = None) -> Path:
        """Create ELF stand-ins (and headers) for ``version`` plus its source."""

        root = self.installed(version)
        root.mkdir(parents=True, exist_ok=True)
        for relative_path in objects:
            path = root / relative_path
            path.parent.mkdir(parents=True, exist_ok=True)
            _ = path.write_bytes(ELF_MAGIC + relative_path.encode())
        for relative_path, text in (headers or {}).items():
            path = root / relative_path
            path.parent.mkdir(parents=True, exist_ok=True)
            _ = path.write_text(text, encoding="utf-8")

        source = self.source(version)
        source.parent.mkdir(parents=True, exist_ok=True)
        if version == LIVE_VERSION:
            source.mkdir(exist_ok=True)
        elif not source.exists():
            _ = source.write_bytes(b"archive")
        return root

    def profile_document(
        self,
        versions: list[str],
        version_options: dict[str, dict[str, Any]] | None = None,
        **options: Any,
    ) -> dict[str, Any]:
        entries: list[dict[str, Any]] = []
        for number in versions:
            entry: dict[str, Any] = {
                "number": number,
                "installed": str(self.installed(number)),
                "source": str(self.source(number)),
            }
            entry.update((version_options or {}).get(number, {}))
            entries.append(entry)
        return {"name": LIBRARY, "versions": entries, **options}

    def profile(
        self,
        versions: list[str],
        version_options: dict[str, dict[str, Any]] | None = None,
        **options: Any,
    ) -> LibraryProfile:
        """Profile listing ``versions`` newest first."""

        return parse_profile(self.profile_document(versions, version_options, **options))

    def context(self, profile: LibraryProfile, **options: Any) -> RunContext:
        return RunContext(profile=profile, settings=self.settings, **options)

    def open_store(self) -> ArtifactStore:
        store = ArtifactStore(DatabaseManager(self.settings.data_dir / "db" / LIBRARY / "tracker.db"))
        _ = store.load()
        _ = store.repair()
        self._stores.append(store)
        return store

    def run(
        self,
        context: RunContext,
        toolbox: FakeToolbox,
        *,
        marker: str | None = None,
        **options: Any,
    ) -> tuple[PipelineOrchestrator, ArtifactStore]:
        """Run a full build in a freshly opened store, like a new invocation."""

        store = self.open_store()
        orchestrator = PipelineOrchestrator(
            context,
            store,
            toolbox.tools,
            marker_provider=lambda: marker,
            **options,
        )
        try:
            _ = orchestrator.run()
        finally:
            store.close()
        return orchestrator, self.open_store()

    def close(self) -> None:
        for store in self._stores:
            store.close()


@pytest.fixture
def workspace(tmp_path: Path) -> Iterator[LibraryWorkspace]:
    """A library workspace whose stores are closed after the test."""

    instance = LibraryWorkspace(tmp_path)
    yield instance
    instance.close()


@pytest.fixture
def toolbox_factory() -> Callable[[], FakeToolbox]:
    """Create independent fake toolboxes, one per simulated invocation."""

    return FakeToolbox


@pytest.fixture
def toolbox() -> FakeToolbox:
    return FakeToolbox()
