"""Summary: Combine per-object comparison results into a pair-level score.
Why: A version pair is summarised by one backward-compatibility percentage,
weighting each object by its exported symbol count."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from typing import final

from abitrack.features.store.domain.records import PairCompareRecord, PairSummaryRecord


def truncate_percent(value: float) -> float:
    """Truncate (not round) to two decimals: 99.999 gives 99.99."""

    return math.floor(value * 100 + 1e-9) / 100 if value >= 0 else -math.floor(-value * 100 + 1e-9) / 100


@final
class CompatibilityAggregator:
    """Weighted backward-compatibility score for one adjacent version pair.

    ``bc = 100 - sum(affected * weight) / sum(weight)`` over mapped objects,
    then scaled by ``1 - removed / (sum(weight) + removed)`` where ``removed``
    is the symbol count of objects that disappeared. Added objects only feed
    the counters.
    """

    def aggregate(
        self,
        pair_results: Sequence[PairCompareRecord],
        object_weights: Mapping[str, int],
        added_objects: Iterable[str],
        removed_objects: Iterable[str],
        *,
        added_weights: Mapping[str, int] | None = None,
        renamed_objects: int = 0,
        changed_soname: int = 0,
        total_objects: int | None = None,
        summary_path: str | None = None,
        upstream_marker: str | None = None,
    ) -> PairSummaryRecord:
        """Build the summary record.

        Args:
            pair_results: Comparator results for mapped objects.
            object_weights: Symbol counts keyed by old-side relative path, for
                mapped and removed objects alike.
            added_objects: New-side objects without a predecessor.
            removed_objects: Old-side objects without a successor.
            added_weights: Symbol counts of added objects, for the counters.
            renamed_objects: Number of objects matched by the rename fallback.
            changed_soname: Number of mapped objects whose soname changed.
            total_objects: Number of old-side objects; defaults to mapped + removed.
            summary_path: Where the summary was written, if anywhere.
            upstream_marker: Live source marker at build time.
        """

        added = sorted(set(added_objects))
        removed = sorted(set(removed_objects))

        affected_weighted = 0.0
        source_weighted = 0.0
        source_available = False
        total_weight = 0
        added_symbols = 0
        removed_symbols = 0
        total_problems = 0
        source_total_problems = 0

        for result in pair_results:
            weight = max(int(object_weights.get(result.object_old, 0)), 0)
            affected_weighted += result.affected * weight
            total_weight += weight
            added_symbols += result.added
            removed_symbols += result.removed
            total_problems += result.total_problems
            if result.source_affected is not None:
                source_available = True
                source_weighted += result.source_affected * weight
                source_total_problems += result.source_total_problems or 0

        removed_weight = sum(max(int(object_weights.get(path, 0)), 0) for path in removed)
        added_weight = sum(max(int((added_weights or {}).get(path, 0)), 0) for path in added)
        old_side_count = (
            total_objects if total_objects is not None else len(pair_results) + len(removed)
        )

        bc = self._score(affected_weighted, total_weight, removed_weight, bool(removed), old_side_count)
        source_bc = (
            self._score(source_weighted, total_weight, removed_weight, bool(removed), old_side_count)
            if source_available
            else None
        )

        return PairSummaryRecord(
            backward_compatibility=bc,
            source_backward_compatibility=source_bc,
            added=added_symbols,
            removed=removed_symbols,
            total_problems=total_problems,
            source_total_problems=source_total_problems if source_available else None,
            objects_added=len(added),
            objects_removed=len(removed),
            objects_renamed=renamed_objects,
            changed_soname=changed_soname,
            objects_added_symbols=added_weight,
            objects_removed_symbols=removed_weight,
            total_objects=old_side_count,
            summary_path=summary_path,
            upstream_marker=upstream_marker,
        )

    @staticmethod
    def _score(
        affected_weighted: float,
        total_weight: int,
        removed_weight: int,
        has_removed: bool,
        old_side_count: int,
    ) -> float:
        bc = 100.0
        if total_weight > 0:
            bc -= affected_weighted / total_weight
        if has_removed and old_side_count > 0:
            denominator = total_weight + removed_weight
            if denominator > 0:
                bc *= 1 - removed_weight / denominator
        return truncate_percent(bc)


__all__ = ["CompatibilityAggregator", "truncate_percent"]
