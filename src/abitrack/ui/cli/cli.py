"""Command line interface for abitrack."""

import sys
from typing import final

from abitrack.platform.logging import logger
from abitrack.shared.errors import TrackerError
from abitrack.ui.cli.args import ArgumentParser
from abitrack.ui.cli.args.options import BuildArgs, CLIArgs
from abitrack.ui.cli.commands import (
    BuildCommand,
    CleanUnusedCommand,
    ClearCommand,
    CommandExecutor,
    StatusCommand,
)


@final
class CommandProcessor:
    """Command line interface processor."""

    @staticmethod
    def process_command(args_list: list[str] | None = None) -> None:
        """Process command line arguments.

        Args:
            args_list: List of command line arguments (for testing).
        """
        try:
            args: CLIArgs = ArgumentParser.process_args(args_list)
            exit_code = CommandProcessor._command_for(args).execute()
            if exit_code:
                sys.exit(exit_code)
            return

        except TrackerError as e:
            logger.error("%s", e)
            sys.exit(e.exit_code)
        except KeyboardInterrupt:
            logger.info("\nOperation cancelled by user")
            sys.exit(130)
        except Exception as e:
            logger.error("An unexpected error occurred: %s", str(e))
            sys.exit(1)

    @staticmethod
    def _command_for(args: CLIArgs) -> CommandExecutor:
        if isinstance(args, BuildArgs):
            return BuildCommand(args)
        match args.command:
            case "clear":
                return ClearCommand(args)
            case "clean-unused":
                return CleanUnusedCommand(args)
            case _:
                return StatusCommand(args)


def main() -> int:
    """Main entry point.

    Returns:
        int: Process exit code (0 on success). Errors leave through
        ``sys.exit(...)``, so this return is only reached on success.
    """
    CommandProcessor.process_command()
    return 0
