"""Command line argument options."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, final

from abitrack.features.store.domain.keys import Stage


@final
@dataclass(slots=True)
class BuildArgs:
    """Command line arguments for the ``build`` subcommand."""

    command: Literal["build"]
    profile_path: Path
    rebuild: bool
    target_version: str | None
    target_stage: Stage | None
    regen_dump: bool
    workers: int | None
    verbose: bool
    quiet: bool


@final
@dataclass(slots=True)
class MaintenanceArgs:
    """Command line arguments for ``clear``, ``clean-unused`` and ``status``."""

    command: Literal["clear", "clean-unused", "status"]
    profile_path: Path
    force: bool
    verbose: bool
    quiet: bool


CLIArgs = BuildArgs | MaintenanceArgs

__all__ = ["BuildArgs", "CLIArgs", "MaintenanceArgs"]
