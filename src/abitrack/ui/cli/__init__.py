"""Command line interface."""

from abitrack.ui.cli.cli import CommandProcessor, main

__all__ = ["CommandProcessor", "main"]
