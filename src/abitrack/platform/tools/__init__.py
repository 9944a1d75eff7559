"""Adapters for the external analysis tools."""

from .abi_dumper import AbiDumper, DumpOptions
from .archive import ArchiveInspector, archive_kind
from .compliance_checker import (
    CompareOptions,
    CompareOutcome,
    CompareSummary,
    ComplianceChecker,
    parse_summary_line,
)
from .diff_tools import HeaderDiffTool, PackageDiffTool
from .gnuplot import GraphRenderer
from .objdump import SonameReader
from .runner import CommandResult, ToolRunner
from .scm import ScmClient, update_marker
from .versions import compare_versions, require_minimum, tool_version

__all__ = [
    "AbiDumper",
    "ArchiveInspector",
    "CommandResult",
    "CompareOptions",
    "CompareOutcome",
    "CompareSummary",
    "ComplianceChecker",
    "DumpOptions",
    "GraphRenderer",
    "HeaderDiffTool",
    "PackageDiffTool",
    "ScmClient",
    "SonameReader",
    "ToolRunner",
    "archive_kind",
    "compare_versions",
    "parse_summary_line",
    "require_minimum",
    "tool_version",
    "update_marker",
]
