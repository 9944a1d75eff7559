"""src/abitrack/features/pipeline/usecases/stages/version_stages.py
Where: Pipeline feature usecases layer.
What: Per-version stages: release date, sonames, changelog and ABI dumps.
Why: Each stage builds one cacheable artifact (or one per object) through
``PipelineLike.process_item`` so skipping, failure accounting and
checkpointing stay in one place.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from functools import partial
from pathlib import Path
from typing import Final

from abitrack.config.profile import VersionSpec
from abitrack.features.matching import soname_version
from abitrack.features.pipeline.domain.object_scan import relative_objects
from abitrack.features.store.domain.keys import ArtifactKey, Stage, short_hash
from abitrack.features.store.domain.records import (
    ABIDumpRecord,
    ChangelogRecord,
    DateRecord,
    SonameRecord,
)
from abitrack.platform.filesystem import (
    descend_single_child,
    ensure_directory,
    ensure_parent_directory,
    remove_tree,
    write_text_file,
)
from abitrack.platform.logging import logger
from abitrack.platform.tools import DumpOptions
from abitrack.shared.errors import ToolInvocationError

from ..context import META_FILE_NAME
from ..processing_types import ItemStatus, PipelineEvent
from .protocol import PipelineLike

CHANGELOG_FILE_NAME: Final[str] = "log.txt"
MIN_CHANGELOG_SIZE: Final[int] = 250

# probed in order; the first file larger than MIN_CHANGELOG_SIZE wins
CHANGELOG_CANDIDATES: Final[tuple[str, ...]] = (
    "NEWS",
    "CHANGES",
    "CHANGES.txt",
    "RELEASE_NOTES",
    "ChangeLog",
    "ChangeLog.md",
    "Changelog",
    "changelog",
    "RELEASE_NOTES.md",
    "CHANGELOG.md",
    "CHANGELOG.txt",
    "RELEASE_NOTES.markdown",
    "NEWS.md",
    "CHANGES.md",
    "changes.txt",
    "changes",
    "CHANGELOG",
    "RELEASE-NOTES",
    "WHATSNEW",
    "CHANGE_LOG",
    "doc/ChangeLog",
    "ChangeLog.txt",
)


def find_changelog(root: Path) -> Path | None:
    """Return the first well-known changelog file under ``root``."""

    for name in CHANGELOG_CANDIDATES:
        candidate = root / name
        if candidate.is_file() and candidate.stat().st_size > MIN_CHANGELOG_SIZE:
            return candidate
    return None


# ---------------------------------------------------------------------------
# Release date
# ---------------------------------------------------------------------------


def detect_date(pipeline: PipelineLike, spec: VersionSpec) -> ItemStatus:
    key = ArtifactKey.for_version(Stage.DATE, spec.number)
    return pipeline.process_item(key, partial(_read_date, pipeline, spec))


def _read_date(pipeline: PipelineLike, spec: VersionSpec) -> DateRecord | None:
    source = spec.source
    if spec.is_live:
        scm = pipeline.tools.scm
        if scm is None:
            raise ToolInvocationError("scm", "unknown type of source code repository")
        if source is None or not source.is_dir():
            raise ToolInvocationError("scm", f"can't access '{source}'")
        date = scm.last_commit_date(source)
    else:
        if source is None or not source.is_file():
            raise ToolInvocationError("archive", f"can't access '{source}'")
        date = pipeline.tools.archives.latest_entry_date(source)

    if date is None:
        logger.warning("can't detect release date of %s", spec.number)
        return None
    return DateRecord(date=date, upstream_marker=pipeline.marker_for(spec))


# ---------------------------------------------------------------------------
# Sonames
# ---------------------------------------------------------------------------


def detect_soname(pipeline: PipelineLike, spec: VersionSpec) -> ItemStatus | None:
    """Read the soname of every object of ``spec``; once per run.

    Returns None when the stage does not apply (kernel profiles, versions
    without an installed tree, or already handled during this run).
    """

    if pipeline.context.profile.kernel_mode:
        return None
    if not pipeline.claim(Stage.SONAME, spec.number):
        return None
    if not pipeline.is_available(spec):
        return None
    key = ArtifactKey.for_version(Stage.SONAME, spec.number)
    return pipeline.process_item(key, partial(_read_sonames, pipeline, spec))


def _read_sonames(pipeline: PipelineLike, spec: VersionSpec) -> SonameRecord:
    installed = spec.installed
    assert installed is not None

    sonames: dict[str, str | None] = {}
    versions: set[str] = set()
    for relative_path in relative_objects(
        installed,
        kernel_mode=False,
        object_filter=pipeline.object_filter,
    ):
        soname = pipeline.tools.soname_reader.read_soname(installed / relative_path)
        sonames[relative_path] = soname
        if soname:
            version = soname_version(soname)
            if version:
                versions.add(version)

    versions -= set(pipeline.context.profile.skip_soversions)
    return SonameRecord(
        sonames=sonames,
        sover="/".join(sorted(versions)) or None,
        installed_root=str(installed),
        upstream_marker=pipeline.marker_for(spec),
    )


# ---------------------------------------------------------------------------
# Changelog
# ---------------------------------------------------------------------------


def create_changelog(pipeline: PipelineLike, spec: VersionSpec) -> ItemStatus | None:
    key = ArtifactKey.for_version(Stage.CHANGELOG, spec.number)
    setting = spec.changelog
    if setting == "off" or (setting is not None and "://" in setting):
        # an external changelog URL leaves nothing to extract
        _ = remove_tree(pipeline.context.layout.changelog_dir(spec.number))
        if pipeline.store.invalidate(key):
            _ = pipeline.store.persist()
        return None
    return pipeline.process_item(key, partial(_extract_changelog, pipeline, spec))


def _extract_changelog(pipeline: PipelineLike, spec: VersionSpec) -> ChangelogRecord:
    layout = pipeline.context.layout
    source = spec.source
    if source is None or not source.exists():
        raise ToolInvocationError("changelog", f"can't access '{source}'")

    target_dir = layout.changelog_dir(spec.number)
    output = target_dir / CHANGELOG_FILE_NAME
    _ = remove_tree(target_dir)

    found: Path | None = None
    if spec.is_live:
        scm = pipeline.tools.scm
        if scm is None:
            raise ToolInvocationError("scm", "unknown type of source code repository")
        found = scm.write_log(source, output)
    elif spec.changelog is not None:
        scratch = ensure_directory(layout.scratch_dir)
        with tempfile.TemporaryDirectory(dir=scratch) as tmp:
            root = descend_single_child(pipeline.tools.archives.extract(source, Path(tmp)))
            if spec.changelog == "on":
                candidate = find_changelog(root)
            else:
                named = root / spec.changelog
                candidate = named if named.is_file() and named.stat().st_size > 0 else None
            if candidate is not None:
                _ = ensure_parent_directory(output)
                _ = shutil.copyfile(candidate, output)
                found = output

    if found is None:
        _ = remove_tree(target_dir)
        return ChangelogRecord(path=None, upstream_marker=pipeline.marker_for(spec))
    return ChangelogRecord(path=str(found), upstream_marker=pipeline.marker_for(spec))


# ---------------------------------------------------------------------------
# ABI dumps
# ---------------------------------------------------------------------------


def dump_version(pipeline: PipelineLike, spec: VersionSpec, *, force: bool = False) -> None:
    """Dump every object of ``spec``, reusing cached dumps that are still fresh.

    Runs at most once per version and run. ``force`` discards the cached
    dumps first.
    """

    ctx = pipeline.context
    version = spec.number
    if not pipeline.claim(Stage.ABIDUMP, version):
        return
    if not pipeline.is_available(spec):
        return
    installed = spec.installed
    assert installed is not None

    store = pipeline.store
    layout = ctx.layout
    forced = force or (ctx.rebuild and ctx.selects(spec))
    if forced:
        _ = store.invalidate_scope(Stage.ABIDUMP, version)
        _ = remove_tree(layout.dump_dir(version))

    objects = relative_objects(
        installed,
        kernel_mode=ctx.profile.kernel_mode,
        object_filter=pipeline.object_filter,
    )
    if not objects:
        pipeline.log_pipeline(
            logging.ERROR,
            PipelineEvent.ITEM_FAILED,
            "can't find objects",
            stage=Stage.ABIDUMP,
            version=version,
            error_message="can't find objects",
        )
        pipeline.stats.record(ItemStatus.FAILED, f"{Stage.ABIDUMP}:{version}")
        return

    wanted = {short_hash(relative_path): relative_path for relative_path in objects}

    # dumps of objects that left the installed tree
    for key, _record in store.items(Stage.ABIDUMP, version):
        if key.item not in wanted:
            _ = store.invalidate(key)
            _ = remove_tree(layout.dump_dir(version) / key.item)

    pipeline.stage_start(Stage.ABIDUMP, version)
    for relative_path in objects:
        item = short_hash(relative_path)
        key = ArtifactKey.for_version(Stage.ABIDUMP, version, item)
        status = pipeline.process_item(
            key,
            partial(_dump_object, pipeline, spec, relative_path, item),
            forced=forced,
            item_label=relative_path,
        )
        if status is ItemStatus.FAILED:
            pipeline.record_failed_dump(version, relative_path)


def _dump_object(
    pipeline: PipelineLike,
    spec: VersionSpec,
    relative_path: str,
    item: str,
) -> ABIDumpRecord:
    profile = pipeline.context.profile
    installed = spec.installed
    assert installed is not None

    output = pipeline.context.layout.dump_path(spec.number, item)
    object_dir = output.parent
    _ = remove_tree(object_dir)

    options = DumpOptions(
        public_headers=None if profile.private_abi or profile.kernel_mode else installed,
        kernel=profile.kernel_mode and not profile.private_abi,
    )
    dumper = pipeline.tools.dumper
    try:
        if not dumper.dump(installed / relative_path, spec.number, output, options):
            raise ToolInvocationError("abi-dumper", "can't create ABI dump")
        lang = dumper.read_language(output)
        total = dumper.count_symbols(output)
    except ToolInvocationError:
        _ = remove_tree(object_dir)
        raise

    tool_version = pipeline.tool_version("abi-dumper")
    meta = {
        "object": relative_path,
        "lang": lang,
        "total_symbols": total,
        "public_abi": not profile.private_abi,
        "tool_version": tool_version,
    }
    write_text_file(object_dir / META_FILE_NAME, json.dumps(meta, indent=2) + "\n")

    return ABIDumpRecord(
        path=str(output),
        object=relative_path,
        lang=lang,
        total_symbols=total,
        tool_version=tool_version,
        installed_root=str(installed),
        upstream_marker=pipeline.marker_for(spec),
    )


__all__ = [
    "CHANGELOG_CANDIDATES",
    "CHANGELOG_FILE_NAME",
    "create_changelog",
    "detect_date",
    "detect_soname",
    "dump_version",
    "find_changelog",
]
