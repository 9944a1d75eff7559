"""src/abitrack/features/pipeline/usecases/stages/pair_stages.py
Where: Pipeline feature usecases layer.
What: Stages for one adjacent (older, newer) version pair: per-object
comparisons aggregated into an ABI report, header diffs and package diffs.
Why: Pair artifacts are the tracker's output; their prerequisites (dumps and
sonames) are pulled in on demand so any stage can be targeted alone.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Final

from abitrack.config.profile import VersionSpec
from abitrack.features.matching import ObjectMapping, short_name
from abitrack.features.matching.domain.object_names import file_name
from abitrack.features.pipeline.domain.headers import find_headers, pair_headers, same_content
from abitrack.features.store.domain.keys import ArtifactKey, Stage, short_hash
from abitrack.features.store.domain.records import (
    ABIDumpRecord,
    HeadersDiffRecord,
    PackageDiffRecord,
    PairCompareRecord,
    PairSummaryRecord,
    SonameRecord,
)
from abitrack.platform.filesystem import remove_tree, write_text_file
from abitrack.platform.logging import logger
from abitrack.shared.errors import ToolInvocationError

from ..context import META_FILE_NAME
from ..processing_types import ItemStatus, PipelineEvent
from .protocol import PipelineLike
from .version_stages import detect_soname, dump_version

PACKAGE_REPORT_NAME: Final[str] = "report.html"
# header diffs smaller than this that only say "no changes" are dropped
_TRIVIAL_DIFF_SIZE: Final[int] = 3500
_NO_CHANGES: Final[re.Pattern[str]] = re.compile(
    r"The files are identical|No changes|Failed to create"
)

DumpIndex = dict[str, tuple[ArtifactKey, ABIDumpRecord]]


def _pair_scope(older: VersionSpec, newer: VersionSpec) -> str:
    return ArtifactKey.for_pair(Stage.COMPARE, older.number, newer.number).scope


# ---------------------------------------------------------------------------
# ABI report
# ---------------------------------------------------------------------------


def create_abi_report(
    pipeline: PipelineLike,
    older: VersionSpec,
    newer: VersionSpec,
) -> ItemStatus | None:
    """Compare every mapped object of the pair and store the aggregated summary."""

    if not (pipeline.is_available(older) and pipeline.is_available(newer)):
        return None
    store = pipeline.store
    key = ArtifactKey.for_pair(Stage.ABIREPORT, older.number, newer.number)
    summary = store.get_typed(key, PairSummaryRecord)
    if summary is not None and not pipeline.context.rebuild:
        missing = [
            item
            for item in summary.compare_items
            if store.get(ArtifactKey.for_pair(Stage.COMPARE, older.number, newer.number, item))
            is None
        ]
        if missing:
            logger.debug("Summary %s lost %d comparison(s); rebuilding", key, len(missing))
            _ = store.invalidate(key)

    pipeline.stage_start(Stage.ABIREPORT, newer.number, older.number)
    return pipeline.process_item(key, partial(_build_abi_report, pipeline, older, newer))


def _dump_index(pipeline: PipelineLike, spec: VersionSpec) -> DumpIndex:
    index: DumpIndex = {}
    for key, record in pipeline.store.items(Stage.ABIDUMP, spec.number):
        if isinstance(record, ABIDumpRecord) and not pipeline.object_filter.skip(record.object):
            index[record.object] = (key, record)
    return index


def _sonames(pipeline: PipelineLike, spec: VersionSpec) -> dict[str, str | None]:
    key = ArtifactKey.for_version(Stage.SONAME, spec.number)
    record = pipeline.store.get_typed(key, SonameRecord)
    return dict(record.sonames) if record is not None else {}


def _check_live_dumps(pipeline: PipelineLike, spec: VersionSpec) -> None:
    """Discard the live version's dumps when they no longer match its tree."""

    store = pipeline.store
    dumps = _dump_index(pipeline, spec)
    installed = spec.installed
    if not dumps or installed is None:
        return

    reason: str | None = None
    if any(not (installed / relative_path).exists() for relative_path in dumps):
        reason = "missed object"
    else:
        soname = store.get_typed(ArtifactKey.for_version(Stage.SONAME, spec.number), SonameRecord)
        failed = pipeline.failed_dumps(spec.number)
        if soname is not None:
            for relative_path in soname.sonames:
                if relative_path in dumps or relative_path in failed:
                    continue
                if pipeline.object_filter.skip(relative_path):
                    continue
                reason = "missed object dump"
                break

    if reason is None:
        return

    logger.warning("It's necessary to regenerate ABI dump for %s (%s)", spec.number, reason)
    _ = store.invalidate_scope(Stage.ABIDUMP, spec.number)
    _ = remove_tree(pipeline.context.layout.dump_dir(spec.number))
    _ = store.persist()
    pipeline.release(Stage.ABIDUMP, spec.number)


def _build_abi_report(
    pipeline: PipelineLike,
    older: VersionSpec,
    newer: VersionSpec,
) -> PairSummaryRecord | None:
    ctx = pipeline.context
    store = pipeline.store
    layout = ctx.layout

    for spec in (older, newer):
        _ = detect_soname(pipeline, spec)

    if newer.is_live:
        _check_live_dumps(pipeline, newer)

    if (
        ctx.regen_dump
        and ctx.profile.regen_dump
        and not pipeline.claimed(Stage.ABIDUMP, older.number)
    ):
        logger.info("Regenerating ABI dump for %s", older.number)
        dump_version(pipeline, older, force=True)

    for spec in (older, newer):
        dump_version(pipeline, spec)

    dumps_old = _dump_index(pipeline, older)
    dumps_new = _dump_index(pipeline, newer)
    if not dumps_old or not dumps_new:
        pipeline.log_pipeline(
            logging.ERROR,
            PipelineEvent.ITEM_FAILED,
            "ABI dumps are missing",
            stage=Stage.ABIREPORT,
            version=newer.number,
            older_version=older.number,
            error_message="ABI dumps are missing",
        )
        return None

    mapping = pipeline.resolver.resolve(
        dumps_old.keys(),
        dumps_new.keys(),
        _sonames(pipeline, older),
        _sonames(pipeline, newer),
    )

    scope = _pair_scope(older, newer)
    if ctx.rebuild:
        _ = remove_tree(layout.compat_dir(older.number, newer.number))
        _ = store.invalidate_scope(Stage.COMPARE, scope)

    pending = {
        short_hash(object_old, object_new): (object_old, object_new)
        for object_old, object_new in mapping.mapped.items()
    }
    for key, _record in store.items(Stage.COMPARE, scope):
        if key.item not in pending:
            _ = store.invalidate(key)
            _ = remove_tree(layout.compare_dir(older.number, newer.number, key.item))

    def compare(entry: tuple[str, tuple[str, str]]) -> ItemStatus:
        item, (object_old, object_new) = entry
        return compare_objects(
            pipeline,
            older,
            newer,
            item,
            dumps_old[object_old][1],
            dumps_new[object_new][1],
        )

    ordered = sorted(pending.items(), key=lambda entry: (entry[1][0].lower(), entry[1][0]))
    pipeline.map_parallel(compare, ordered)

    results = [
        record
        for item in pending
        if (
            record := store.get_typed(
                ArtifactKey.for_pair(Stage.COMPARE, older.number, newer.number, item),
                PairCompareRecord,
            )
        )
        is not None
    ]
    weights = {
        relative_path: pipeline.symbol_weight(key, record)
        for relative_path, (key, record) in dumps_old.items()
    }
    added_weights = {
        relative_path: pipeline.symbol_weight(*dumps_new[relative_path])
        for relative_path in mapping.added
    }

    summary = pipeline.aggregator.aggregate(
        results,
        weights,
        mapping.added,
        mapping.removed,
        added_weights=added_weights,
        renamed_objects=len(mapping.renamed),
        changed_soname=len(mapping.soname_changes),
        total_objects=len(dumps_old),
        upstream_marker=pipeline.marker_for(newer),
    )

    summary_path = layout.objects_report_dir(older.number, newer.number) / META_FILE_NAME
    _write_objects_report(summary_path, summary, mapping)

    pipeline.log_pipeline(
        logging.INFO,
        PipelineEvent.PAIR_SUMMARY,
        "%s -> %s: %s%% backward compatible",
        older.number,
        newer.number,
        summary.backward_compatibility,
        stage=Stage.ABIREPORT,
        version=newer.number,
        older_version=older.number,
        backward_compatibility=summary.backward_compatibility,
    )
    # every mapped pair is listed, failed ones too, so a failure is retried next run
    return replace(summary, summary_path=str(summary_path), compare_items=sorted(pending))


def _write_objects_report(
    path: Path,
    summary: PairSummaryRecord,
    mapping: ObjectMapping,
) -> None:
    payload = {
        "backward_compatibility": summary.backward_compatibility,
        "source_backward_compatibility": summary.source_backward_compatibility,
        "added": summary.added,
        "removed": summary.removed,
        "total_problems": summary.total_problems,
        "objects_added": summary.objects_added,
        "objects_removed": summary.objects_removed,
        "objects_renamed": summary.objects_renamed,
        "changed_soname": summary.changed_soname,
        "mapped": mapping.mapped,
        "added_objects": list(mapping.added),
        "removed_objects": list(mapping.removed),
        "renamed_objects": mapping.renamed,
        "soname_changes": [
            {
                "old_object": change.old_object,
                "new_object": change.new_object,
                "old_soname": change.old_soname,
                "new_soname": change.new_soname,
            }
            for change in mapping.soname_changes
        ],
    }
    write_text_file(path, json.dumps(payload, indent=2, sort_keys=True) + "\n")


def compare_objects(
    pipeline: PipelineLike,
    older: VersionSpec,
    newer: VersionSpec,
    item: str,
    dump_old: ABIDumpRecord,
    dump_new: ABIDumpRecord,
) -> ItemStatus:
    key = ArtifactKey.for_pair(Stage.COMPARE, older.number, newer.number, item)
    return pipeline.process_item(
        key,
        partial(_run_compare, pipeline, older, newer, item, dump_old, dump_new),
        item_label=dump_old.object,
    )


def _run_compare(
    pipeline: PipelineLike,
    older: VersionSpec,
    newer: VersionSpec,
    item: str,
    dump_old: ABIDumpRecord,
    dump_new: ABIDumpRecord,
) -> PairCompareRecord:
    out_dir = pipeline.context.layout.compare_dir(older.number, newer.number, item)
    _ = remove_tree(out_dir)

    label = short_name(dump_old.object) or file_name(dump_old.object)
    try:
        outcome = pipeline.tools.checker.compare(
            Path(dump_old.path),
            Path(dump_new.path),
            out_dir,
            pipeline.compare_options,
            library=label,
        )
    except ToolInvocationError:
        _ = remove_tree(out_dir)
        raise

    binary = outcome.binary
    source = outcome.source
    report_path: Path | None = outcome.binary_report
    source_report: Path | None = outcome.source_report
    changed = bool(binary.added or binary.removed or binary.total_problems)

    meta_path = out_dir / META_FILE_NAME
    meta = {
        "object_old": dump_old.object,
        "object_new": dump_new.object,
        "affected": binary.affected,
        "added": binary.added,
        "removed": binary.removed,
        "total_problems": binary.total_problems,
        "source_affected": None if source is None else source.affected,
        "source_total_problems": None if source is None else source.total_problems,
    }
    write_text_file(meta_path, json.dumps(meta, indent=2) + "\n")

    if not changed and pipeline.context.profile.hide_empty:
        for path in (report_path, source_report):
            if path is not None:
                path.unlink(missing_ok=True)
        report_path = None
        source_report = None

    return PairCompareRecord(
        object_old=dump_old.object,
        object_new=dump_new.object,
        affected=binary.affected,
        added=binary.added,
        removed=binary.removed,
        total_problems=binary.total_problems,
        report_path=None if report_path is None else str(report_path),
        meta_path=str(meta_path),
        source_affected=None if source is None else source.affected,
        source_total_problems=None if source is None else source.total_problems,
        source_report_path=None if source_report is None else str(source_report),
        upstream_marker=pipeline.marker_for(newer),
    )


# ---------------------------------------------------------------------------
# Header and package diffs
# ---------------------------------------------------------------------------


def diff_headers(
    pipeline: PipelineLike,
    older: VersionSpec,
    newer: VersionSpec,
) -> ItemStatus | None:
    if not (newer.headers_diff or pipeline.context.explicit_target):
        return None
    if not (pipeline.is_available(older) and pipeline.is_available(newer)):
        return None
    key = ArtifactKey.for_pair(Stage.HEADERSDIFF, older.number, newer.number)
    return pipeline.process_item(key, partial(_build_headers_diff, pipeline, older, newer))


def _build_headers_diff(
    pipeline: PipelineLike,
    older: VersionSpec,
    newer: VersionSpec,
) -> HeadersDiffRecord:
    tool = pipeline.tools.header_diff
    if not tool.available:
        raise ToolInvocationError("rfcdiff", 'can\'t find "rfcdiff"')

    old_root = older.installed
    new_root = newer.installed
    assert old_root is not None and new_root is not None

    out_dir = pipeline.context.layout.headers_diff_dir(older.number, newer.number)
    _ = remove_tree(out_dir)

    changed: list[str] = []
    for relative_path, old_header, new_header in pair_headers(
        find_headers(old_root),
        find_headers(new_root),
        old_root=old_root,
        new_root=new_root,
    ):
        if same_content(old_header, new_header):
            continue
        text = tool.diff(old_header, new_header)
        if not text.strip():
            continue
        if len(text.encode("utf-8")) < _TRIVIAL_DIFF_SIZE and _NO_CHANGES.search(text):
            continue
        write_text_file(out_dir / "files" / f"{relative_path}.html", text)
        changed.append(relative_path)

    meta_path = out_dir / META_FILE_NAME
    write_text_file(
        meta_path,
        json.dumps({"total": len(changed), "headers": changed}, indent=2) + "\n",
    )
    return HeadersDiffRecord(
        path=str(meta_path),
        total=len(changed),
        upstream_marker=pipeline.marker_for(newer),
    )


def create_package_diff(
    pipeline: PipelineLike,
    older: VersionSpec,
    newer: VersionSpec,
) -> ItemStatus | None:
    if newer.is_live:
        return None
    if not (newer.pkg_diff or pipeline.context.explicit_target):
        return None
    key = ArtifactKey.for_pair(Stage.PKGDIFF, older.number, newer.number)
    return pipeline.process_item(key, partial(_build_package_diff, pipeline, older, newer))


def _build_package_diff(
    pipeline: PipelineLike,
    older: VersionSpec,
    newer: VersionSpec,
) -> PackageDiffRecord:
    for spec in (older, newer):
        if spec.source is None or not spec.source.exists():
            raise ToolInvocationError("pkgdiff", f"can't access '{spec.source}'")
    assert older.source is not None and newer.source is not None

    out_dir = pipeline.context.layout.package_diff_dir(older.number, newer.number)
    _ = remove_tree(out_dir)
    report = out_dir / PACKAGE_REPORT_NAME

    changed = pipeline.tools.package_diff.diff(older.source, newer.source, report)
    if not report.is_file():
        raise ToolInvocationError("pkgdiff", "can't create package diff")
    return PackageDiffRecord(path=str(report), changed=changed)


__all__ = [
    "PACKAGE_REPORT_NAME",
    "compare_objects",
    "create_abi_report",
    "create_package_diff",
    "diff_headers",
]
