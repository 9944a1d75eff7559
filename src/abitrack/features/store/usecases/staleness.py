"""Summary: Rebuild decisions for cached artifacts.
Why: Archival versions are immutable once built; only artifacts touching the
live checkout can go stale without an explicit rebuild."""

from __future__ import annotations

from typing import final

from abitrack.features.store.domain.keys import ArtifactKey

from .artifact_store import UPSTREAM_MARKER_KEY, ArtifactStore


def live_source_changed(recorded_marker: str | None, current_marker: str | None) -> bool:
    """Return True when the live source moved since the marker was recorded.

    Nothing recorded, or no marker available now, counts as unchanged.
    """

    if not recorded_marker or not current_marker:
        return False
    return recorded_marker != current_marker


@final
class StalenessOracle:
    """Decide whether a cached artifact must be regenerated."""

    def __init__(self, store: ArtifactStore) -> None:
        self._store: ArtifactStore = store

    def needs_rebuild(
        self,
        key: ArtifactKey,
        forced_rebuild: bool,
        live_source_changed: bool,
    ) -> bool:
        if forced_rebuild:
            return True
        if self._store.get(key) is None:
            return True
        if key.touches_live and live_source_changed:
            return True
        return False

    def record_outdated(self, key: ArtifactKey, current_marker: str | None) -> bool:
        """True when the cached record of a live key was built from an older checkout.

        Each record carries the marker it was built with, so items checkpointed
        by an interrupted run stay fresh.
        """

        if not key.touches_live:
            return False
        record = self._store.get(key)
        if record is None:
            return False
        return live_source_changed(record.upstream_marker, current_marker)

    def live_changed_since_last_run(self, current_marker: str | None) -> bool:
        """Compare ``current_marker`` with the one saved by the previous run."""

        return live_source_changed(self._store.get_meta(UPSTREAM_MARKER_KEY), current_marker)


__all__ = ["StalenessOracle", "live_source_changed"]
