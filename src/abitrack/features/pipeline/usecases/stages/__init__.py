"""Per-stage build steps driven by the orchestrator."""

from .graph import build_graph, graph_points, value_range
from .pair_stages import compare_objects, create_abi_report, create_package_diff, diff_headers
from .protocol import PipelineLike
from .version_stages import (
    create_changelog,
    detect_date,
    detect_soname,
    dump_version,
    find_changelog,
)

__all__ = [
    "PipelineLike",
    "build_graph",
    "compare_objects",
    "create_abi_report",
    "create_changelog",
    "create_package_diff",
    "detect_date",
    "detect_soname",
    "diff_headers",
    "dump_version",
    "find_changelog",
    "graph_points",
    "value_range",
]
