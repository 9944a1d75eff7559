"""Maintenance commands: clear, clean-unused and status."""

from __future__ import annotations

from typing import final, override

from abitrack.platform.logging import logger
from abitrack.ui.cli.args.options import MaintenanceArgs
from abitrack.ui.cli.commands.executor import CommandExecutor


@final
class ClearCommand(CommandExecutor):
    """Remove every report and the artifact store of a library."""

    args: MaintenanceArgs

    @override
    def execute(self) -> int:
        if not self.app.clear(self.request):
            logger.error("Failed to clear the artifact store")
            return 1
        return 0


@final
class CleanUnusedCommand(CommandExecutor):
    """List (or, with --force, remove) data of versions dropped from the profile."""

    args: MaintenanceArgs

    @override
    def execute(self) -> int:
        plan = self.app.clean_unused(self.request, force=self.args.force)
        self.result_display.show_cleanup(plan, quiet=self.args.quiet)
        return 0


@final
class StatusCommand(CommandExecutor):
    """Show what the artifact store holds."""

    args: MaintenanceArgs

    @override
    def execute(self) -> int:
        self.result_display.show_status(self.app.status(self.request))
        return 0
