"""Command execution package for CLI."""

from abitrack.ui.cli.commands.build import BuildCommand
from abitrack.ui.cli.commands.executor import CommandExecutor
from abitrack.ui.cli.commands.maintenance import (
    CleanUnusedCommand,
    ClearCommand,
    StatusCommand,
)

__all__ = [
    "BuildCommand",
    "CleanUnusedCommand",
    "ClearCommand",
    "CommandExecutor",
    "StatusCommand",
]
