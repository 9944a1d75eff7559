"""Where: platform/tools/runner.py
What: Blocking subprocess execution with a timeout and captured output.
Why: Every external collaborator goes through one place so timeouts and
missing executables surface as per-item tool errors.
"""

from __future__ import annotations

import shutil
import subprocess
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, final

from abitrack.platform.logging import logger
from abitrack.shared.errors import ToolInvocationError, ToolTimeoutError


@dataclass(frozen=True, slots=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str
    elapsed_seconds: float
    command: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@final
class ToolRunner:
    """Run external tools without a shell.

    Non-zero exit codes are returned, not raised: most analysis tools signal
    incompatibilities through their exit status, and success is judged by the
    files they leave behind.
    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        run: Callable[..., subprocess.CompletedProcess[str]] | None = None,
        which: Callable[[str], str | None] | None = None,
    ) -> None:
        self.timeout: float | None = timeout if timeout and timeout > 0 else None
        self._run: Callable[..., subprocess.CompletedProcess[str]] = run or subprocess.run
        self._which: Callable[[str], str | None] = which or shutil.which
        self._lock = threading.Lock()
        self.invocations: int = 0

    def available(self, executable: str) -> bool:
        """Return True when ``executable`` resolves on PATH (or is a path)."""

        return self._which(executable) is not None

    def run(
        self,
        command: Sequence[str | Path],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        tool: str | None = None,
    ) -> CommandResult:
        """Execute ``command`` and capture its output.

        Raises:
            ToolTimeoutError: If the configured timeout elapsed.
            ToolInvocationError: If the executable could not be started.
        """

        argv = [str(part) for part in command]
        name = tool or Path(argv[0]).name
        command_str = " ".join(argv)
        with self._lock:
            self.invocations += 1

        logger.debug("executing %s", command_str)
        started = time.monotonic()
        kwargs: dict[str, Any] = {
            "cwd": str(cwd) if cwd else None,
            "text": True,
            "capture_output": True,
            "timeout": self.timeout,
            "errors": "replace",
        }
        if env is not None:
            kwargs["env"] = dict(env)

        try:
            proc = self._run(argv, **kwargs)
        except subprocess.TimeoutExpired as exc:
            raise ToolTimeoutError(name, self.timeout or 0.0) from exc
        except FileNotFoundError as exc:
            raise ToolInvocationError(name, f"can't find \"{argv[0]}\"") from exc
        except OSError as exc:
            raise ToolInvocationError(name, exc.strerror or str(exc)) from exc

        elapsed = time.monotonic() - started
        if proc.returncode != 0:
            logger.debug("%s exited with %d after %.2fs", name, proc.returncode, elapsed)

        return CommandResult(
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            elapsed_seconds=elapsed,
            command=command_str,
        )


__all__ = ["CommandResult", "ToolRunner"]
