"""src/abitrack/ui/cli/display/result.py
What: Render user-facing summaries for build and maintenance commands.
Why: Keep console output formatting consistent across the interface.
"""

from __future__ import annotations

from typing import final

from rich.console import Console
from rich.table import Table

from abitrack.application.services.track_service import StoreStatus
from abitrack.features.pipeline import CleanupPlan, RunStats


@final
class ResultDisplay:
    """Handles result display in CLI."""

    console: Console

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def show_stats(self, stats: RunStats, quiet: bool = False) -> None:
        """Display the outcome of a build run.

        Args:
            stats: Statistics of the finished run.
            quiet: Whether to suppress non-error output.
        """
        if quiet:
            return

        self.console.print(f"\n[bold]Build Summary ({stats.library}):[/bold]")
        self.console.print(f"[green]Built: {stats.built}[/green]")
        self.console.print(f"Up to date: {stats.skipped}")
        if not stats.failed:
            return

        self.console.print(f"[red]Failed: {stats.failed}[/red]")
        for label in stats.failures:
            self.console.print(f"[red]  • {label}[/red]")

    def show_status(self, status: StoreStatus) -> None:
        self.console.print(f"[bold]{status.library}[/bold] ({status.store_path})")
        if not status.total:
            self.console.print("Nothing built yet.")
            return

        counts = Table(title="Stored artifacts")
        counts.add_column("Stage")
        counts.add_column("Records", justify="right")
        for stage, count in status.counts.items():
            counts.add_row(stage, str(count))
        self.console.print(counts)

        if not status.pairs:
            return

        pairs = Table(title="Backward compatibility")
        pairs.add_column("Older")
        pairs.add_column("Newer")
        pairs.add_column("BC %", justify="right")
        pairs.add_column("Added", justify="right")
        pairs.add_column("Removed", justify="right")
        pairs.add_column("Problems", justify="right")
        for entry in status.pairs:
            summary = entry.summary
            style = "green" if summary.backward_compatibility >= 100 else "red"
            pairs.add_row(
                entry.older,
                entry.newer,
                f"[{style}]{summary.backward_compatibility}[/{style}]",
                str(summary.added),
                str(summary.removed),
                str(summary.total_problems),
            )
        self.console.print(pairs)

    def show_cleanup(self, plan: CleanupPlan, quiet: bool = False) -> None:
        if quiet:
            return
        if plan.is_empty:
            self.console.print("No unused data found.")
            return

        verb = "Removed" if plan.removed else "Unused"
        for version in plan.versions:
            self.console.print(f"{verb} version: {version}")
        for older, newer in plan.pairs:
            self.console.print(f"{verb} pair: {older} → {newer}")
