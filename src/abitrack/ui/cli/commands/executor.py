"""src/abitrack/ui/cli/commands/executor.py
What: Provide shared wiring for CLI command executors.
Why: Reuse the application service and presentation helpers across commands.
"""

from abc import ABC, abstractmethod

from abitrack.application.services.track_service import TrackRequest, TrackService
from abitrack.ui.cli.args.options import CLIArgs
from abitrack.ui.cli.display.result import ResultDisplay


class CommandExecutor(ABC):
    """Base class for command execution."""

    args: CLIArgs
    app: TrackService
    request: TrackRequest
    result_display: ResultDisplay

    def __init__(self, args: CLIArgs, app: TrackService | None = None) -> None:
        """Initialize command executor.

        Args:
            args: Command line arguments.
            app: Application service; a default one is built when omitted.
        """
        self.args = args
        self.app = app or TrackService()
        self.request = self.build_request()
        self.result_display = ResultDisplay()

    def build_request(self) -> TrackRequest:
        return TrackRequest(profile_path=self.args.profile_path)

    @abstractmethod
    def execute(self) -> int:
        """Execute the command.

        Returns:
            Process exit code.
        """
        pass
