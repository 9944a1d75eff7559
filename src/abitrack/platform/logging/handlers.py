"""Where: platform/logging/handlers.py
What: Rich console handler that renders pipeline events and severity prefixes.
Why: Keep the console readable during long builds while the log file keeps
plain records.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any, ClassVar, override

from rich.console import ConsoleRenderable
from rich.logging import RichHandler
from rich.style import Style
from rich.text import Text


class PipelineRichHandler(RichHandler):
    """Rich handler with dedicated rendering for ``pipeline.*`` events."""

    _EVENT_STYLES: ClassVar[dict[str, tuple[str, str]]] = {
        "pipeline.run.start": ("🚀", "cyan"),
        "pipeline.run.complete": ("✅", "green"),
        "pipeline.run.interrupted": ("⏸️", "yellow"),
        "pipeline.stage.start": ("▶️", "blue"),
        "pipeline.item.built": ("🔨", "green"),
        "pipeline.item.skipped": ("↪️", "bright_black"),
        "pipeline.item.failed": ("⛔", "red"),
        "pipeline.version.unavailable": ("❌", "red"),
        "pipeline.pair.summary": ("📊", "magenta"),
        "pipeline.resolver.ambiguity": ("⚠️", "yellow"),
    }
    _SEVERITY_STYLES: ClassVar[dict[int, tuple[str, str]]] = {
        logging.WARNING: ("WARNING: ", "yellow"),
        logging.ERROR: ("ERROR: ", "red"),
        logging.CRITICAL: ("ERROR: ", "bold red"),
    }
    _PATH_SEGMENT_LIMIT: ClassVar[int] = 4

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs["show_time"] = False
        kwargs["show_path"] = False
        kwargs["show_level"] = False  # severity is rendered as a message prefix
        kwargs["rich_tracebacks"] = True
        kwargs["markup"] = False
        kwargs["omit_repeated_times"] = False
        super().__init__(*args, **kwargs)

    def _format_path(self, path: str) -> Text:
        """Render a path compactly, keeping only the trailing segments."""

        pure = PurePosixPath(path)
        parts = [part for part in pure.parts if part and part != pure.anchor]
        truncated = len(parts) > self._PATH_SEGMENT_LIMIT
        if truncated:
            parts = parts[-self._PATH_SEGMENT_LIMIT:]

        text = Text()
        if truncated:
            _ = text.append("…/", style=Style(color="magenta"))
        elif pure.anchor:
            _ = text.append("/", style=Style(color="magenta"))
        for index, part in enumerate(parts):
            if index:
                _ = text.append("/", style=Style(color="magenta"))
            _ = text.append(part, style=Style(color="white"))
        return text

    def _render_event(self, record: logging.LogRecord, message: str) -> Text | None:
        """Render structured pipeline events with dedicated styling."""

        event = getattr(record, "pipeline_event", None)
        if not isinstance(event, str):
            return None

        icon, color = self._EVENT_STYLES.get(event, ("ℹ️", "blue"))
        text = Text()
        _ = text.append(f"{icon} ", style=Style(color=color, bold=True))
        body = Text(style=Style(color=color))

        stage = getattr(record, "stage", None)
        version = getattr(record, "version", None)
        older = getattr(record, "older_version", None)

        if event in {"pipeline.run.start", "pipeline.run.complete", "pipeline.run.interrupted"}:
            library = getattr(record, "library", None)
            label = {
                "pipeline.run.start": "Build started",
                "pipeline.run.complete": "Build complete",
                "pipeline.run.interrupted": "Build interrupted",
            }[event]
            _ = body.append(label)
            if library:
                _ = body.append(f" for {library}")
            metrics: list[str] = []
            for key in ("built", "skipped", "failed"):
                value = getattr(record, key, None)
                if isinstance(value, int):
                    metrics.append(f"{key}={value}")
            duration = getattr(record, "duration_seconds", None)
            if isinstance(duration, (int, float)):
                metrics.append(f"duration={duration:.2f}s")
            if metrics:
                _ = body.append(" [" + ", ".join(metrics) + "]")
        elif event == "pipeline.pair.summary":
            bc = getattr(record, "backward_compatibility", None)
            _ = body.append(f"{older} → {version}")
            if bc is not None:
                _ = body.append(f": {bc}% backward compatible")
        else:
            if stage:
                _ = body.append(f"[{stage}] ")
            if older and version:
                _ = body.append(f"{older} → {version} ")
            elif version:
                _ = body.append(f"{version} ")
            item = getattr(record, "item", None)
            if item:
                _ = body.append_text(self._format_path(str(item)))
                _ = body.append(" ")
            error_message = getattr(record, "error_message", None)
            if event == "pipeline.item.failed" and error_message:
                _ = body.append(f"({error_message})")
            elif message and (not item or event == "pipeline.resolver.ambiguity"):
                _ = body.append(message)

        severity = self._SEVERITY_STYLES.get(record.levelno)
        if severity is not None:
            prefix, prefix_color = severity
            _ = text.append(prefix, style=Style.parse(prefix_color))
        _ = text.append_text(body)
        text.rstrip()
        return text

    @override
    def render_message(self, record: logging.LogRecord, message: str) -> ConsoleRenderable:
        """Render events with custom styling and prefix plain warnings and errors."""

        event_text = self._render_event(record, message)
        if event_text is not None:
            return event_text

        severity = self._SEVERITY_STYLES.get(record.levelno)
        if severity is not None:
            prefix, color = severity
            text = Text()
            _ = text.append(prefix, style=Style.parse(color))
            _ = text.append(message)
            return text

        return super().render_message(record, message)


__all__ = ["PipelineRichHandler"]
