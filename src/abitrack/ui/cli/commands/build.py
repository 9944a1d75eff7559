"""Build command implementation for the CLI."""

from __future__ import annotations

from typing import final, override

from abitrack.application.services.track_service import TrackRequest, TrackService
from abitrack.ui.cli.args.options import BuildArgs
from abitrack.ui.cli.commands.executor import CommandExecutor
from abitrack.ui.cli.display.progress import ProgressDisplay


@final
class BuildCommand(CommandExecutor):
    """Run the incremental build for one library profile."""

    args: BuildArgs

    def __init__(self, args: BuildArgs, app: TrackService | None = None) -> None:
        super().__init__(args, app)
        self.progress_display = ProgressDisplay()

    @override
    def build_request(self) -> TrackRequest:
        return TrackRequest(
            profile_path=self.args.profile_path,
            rebuild=self.args.rebuild,
            target_version=self.args.target_version,
            target_stage=self.args.target_stage,
            regen_dump=self.args.regen_dump,
            workers=self.args.workers,
        )

    @override
    def execute(self) -> int:
        if self.args.quiet:
            stats = self.app.build(self.request)
        else:
            stats = self.progress_display.run_with_service(self.app, self.request)
        self.result_display.show_stats(stats, quiet=self.args.quiet)
        # per-item failures are reported, not fatal
        return 0
