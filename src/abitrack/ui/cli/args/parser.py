"""Command line argument parser."""

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import final

from abitrack.config.settings import load_settings
from abitrack.features.store.domain.keys import BUILD_TARGETS, Stage
from abitrack.platform.logging import logger, setup_logger
from abitrack.ui.cli.args.options import BuildArgs, CLIArgs, MaintenanceArgs


@final
class ArgumentParser:
    """Command line argument parser."""

    @staticmethod
    def create_parser() -> argparse.ArgumentParser:
        """Create argument parser.

        Returns:
            argparse.ArgumentParser: Configured argument parser.
        """
        parser = argparse.ArgumentParser(
            prog="abitrack",
            description="abitrack - build an ABI compatibility timeline for a shared library.",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        subparsers = parser.add_subparsers(dest="command", required=True)

        build_parser = subparsers.add_parser(
            "build",
            help="Build (or incrementally update) every artifact of a library",
        )
        ArgumentParser._add_common_arguments(build_parser)
        _ = build_parser.add_argument(
            "--rebuild",
            action="store_true",
            help="Regenerate cached artifacts of the selected versions",
        )
        _ = build_parser.add_argument(
            "-v",
            "--version-target",
            dest="target_version",
            type=str,
            metavar="VERSION",
            help="Process only this version (and its pair with the previous one)",
        )
        _ = build_parser.add_argument(
            "-t",
            "--target",
            dest="target_stage",
            type=str,
            choices=[str(stage) for stage in BUILD_TARGETS],
            metavar="STAGE",
            help="Run only this stage: " + ", ".join(str(stage) for stage in BUILD_TARGETS),
        )
        _ = build_parser.add_argument(
            "--regen-dump",
            action="store_true",
            help="Regenerate the older version's ABI dump before each comparison",
        )
        _ = build_parser.add_argument(
            "--workers",
            type=int,
            metavar="N",
            help="Number of worker threads for dumps and comparisons",
        )

        clear_parser = subparsers.add_parser(
            "clear",
            help="Remove all reports and the artifact store of a library",
        )
        ArgumentParser._add_common_arguments(clear_parser)

        clean_parser = subparsers.add_parser(
            "clean-unused",
            help="List data of versions no longer in the profile",
        )
        ArgumentParser._add_common_arguments(clean_parser)
        _ = clean_parser.add_argument(
            "--force",
            action="store_true",
            help="Actually remove the unused data",
        )

        status_parser = subparsers.add_parser(
            "status",
            help="Show what the artifact store currently holds",
        )
        ArgumentParser._add_common_arguments(status_parser)

        return parser

    @staticmethod
    def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
        """Apply arguments shared by every subcommand."""

        _ = parser.add_argument(
            "profile",
            type=str,
            help="Path to the library profile (JSON)",
            metavar="PROFILE",
        )
        verbosity = parser.add_mutually_exclusive_group()
        _ = verbosity.add_argument(
            "--verbose",
            action="store_true",
            help="Show detailed processing information",
        )
        _ = verbosity.add_argument(
            "--quiet",
            action="store_true",
            help="Suppress all output except errors",
        )

    @staticmethod
    def process_args(args_list: Sequence[str] | None = None) -> CLIArgs:
        """Process command line arguments.

        Args:
            args_list: List of command line arguments (for testing).

        Returns:
            CLIArgs: Processed command line arguments.

        Raises:
            SystemExit: If the profile is missing or other validation fails.
        """
        parser = ArgumentParser.create_parser()
        parsed_args = parser.parse_args(args_list)

        is_quiet = bool(getattr(parsed_args, "quiet", False))
        is_verbose = bool(getattr(parsed_args, "verbose", False))

        if is_quiet:
            log_level = logging.ERROR
        elif is_verbose:
            log_level = logging.DEBUG
        else:
            log_level = logging.INFO

        settings = load_settings()
        _ = setup_logger(log_file=settings.log_file, console_level=log_level)

        profile_path = Path(parsed_args.profile)
        if not profile_path.exists():
            logger.error("can't access '%s'", profile_path)
            sys.exit(4)

        command: str = parsed_args.command

        if command == "build":
            return ArgumentParser._process_build(parsed_args, profile_path)

        if command in {"clear", "clean-unused", "status"}:
            return MaintenanceArgs(
                command=command,
                profile_path=profile_path,
                force=bool(getattr(parsed_args, "force", False)),
                verbose=is_verbose,
                quiet=is_quiet,
            )

        logger.error("Unsupported command: %s", command)
        sys.exit(2)

    @staticmethod
    def _process_build(parsed_args: argparse.Namespace, profile_path: Path) -> BuildArgs:
        workers = parsed_args.workers
        if workers is not None and workers <= 0:
            logger.error("Workers must be a positive integer; received %s", workers)
            sys.exit(1)

        target_stage = Stage(parsed_args.target_stage) if parsed_args.target_stage else None

        return BuildArgs(
            command="build",
            profile_path=profile_path,
            rebuild=parsed_args.rebuild,
            target_version=parsed_args.target_version,
            target_stage=target_stage,
            regen_dump=parsed_args.regen_dump,
            workers=workers,
            verbose=parsed_args.verbose,
            quiet=parsed_args.quiet,
        )
