"""Display management for CLI interface."""

from abitrack.ui.cli.display.progress import ProgressDisplay
from abitrack.ui.cli.display.result import ResultDisplay

__all__ = ["ProgressDisplay", "ResultDisplay"]
