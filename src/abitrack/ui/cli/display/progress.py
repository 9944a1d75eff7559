"""Progress display functionality for CLI."""

from collections.abc import Callable
from typing import Any, Protocol, final, runtime_checkable

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

from abitrack.application.services.track_service import TrackRequest
from abitrack.features.pipeline import RunStats
from abitrack.platform.logging import PipelineRichHandler, logger


@runtime_checkable
class TrackServiceLike(Protocol):
    """Protocol for application services that can build with progress."""

    def build(
        self,
        request: TrackRequest,
        progress_callback: Callable[[str, str], None] | None = None,
    ) -> RunStats:
        ...


@final
class ProgressDisplay:
    """Handles progress display in CLI."""

    def run_with_service(self, app: TrackServiceLike, request: TrackRequest) -> RunStats:
        """Run a build via the application service with a live status line.

        Args:
            app: Application service instance used to orchestrate the build.
            request: Build parameters.

        Returns:
            Statistics of the finished run.
        """
        progress_console: Console | None = None
        for handler in logger.handlers:
            if isinstance(handler, PipelineRichHandler):
                progress_console = handler.console
                break

        progress_kwargs: dict[str, Any] = {
            "transient": True,
            "redirect_stdout": False,
            "redirect_stderr": False,
        }
        if progress_console is not None:
            progress_kwargs["console"] = progress_console

        columns = (
            SpinnerColumn(),
            TextColumn("{task.description}"),
            TextColumn("[bright_black]{task.completed} built"),
            TimeElapsedColumn(),
        )
        with Progress(*columns, **progress_kwargs) as progress:
            task_id: TaskID = progress.add_task("[cyan]Building...", total=None)

            def _cb(stage: str, label: str) -> None:
                _ = progress.update(
                    task_id,
                    advance=1,
                    description=f"[cyan]{stage}[/cyan] {label}",
                )

            return app.build(request, progress_callback=_cb)
