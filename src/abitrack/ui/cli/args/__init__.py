"""Command line argument handling package."""

from abitrack.ui.cli.args.parser import ArgumentParser
from abitrack.ui.cli.args.options import BuildArgs, CLIArgs, MaintenanceArgs

__all__ = ["ArgumentParser", "BuildArgs", "CLIArgs", "MaintenanceArgs"]
