"""Store use cases: the artifact cache and its staleness rules."""

from .artifact_store import UPSTREAM_MARKER_KEY, ArtifactStore
from .staleness import StalenessOracle, live_source_changed

__all__ = ["ArtifactStore", "StalenessOracle", "UPSTREAM_MARKER_KEY", "live_source_changed"]
