"""Summary: Exception hierarchy shared by the pipeline and the CLI.
Why: Map run-aborting conditions onto stable process exit codes while keeping
per-item tool failures distinguishable from fatal ones."""

from __future__ import annotations

from typing import ClassVar


class TrackerError(Exception):
    """Base class for errors that abort a tracker run."""

    exit_code: ClassVar[int] = 2


class ProfileError(TrackerError):
    """Raised when the library profile is malformed or incomplete."""

    exit_code: ClassVar[int] = 2


class AccessError(TrackerError):
    """Raised when a profile or an input path cannot be read."""

    exit_code: ClassVar[int] = 4


class ModuleError(TrackerError):
    """Raised when a required external tool is missing or too old."""

    exit_code: ClassVar[int] = 9


class ToolInvocationError(RuntimeError):
    """Raised when a single external tool call fails.

    Recoverable: the orchestrator records it against the current item and
    continues with the next one.
    """

    def __init__(self, tool: str, message: str, *, returncode: int | None = None) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool: str = tool
        self.returncode: int | None = returncode


class ToolTimeoutError(ToolInvocationError):
    """Raised when an external tool exceeds the configured timeout."""

    def __init__(self, tool: str, timeout: float) -> None:
        super().__init__(tool, f"timed out after {timeout:g}s")
        self.timeout: float = timeout


__all__ = [
    "AccessError",
    "ModuleError",
    "ProfileError",
    "ToolInvocationError",
    "ToolTimeoutError",
    "TrackerError",
]
