"""Where: src/abitrack/config/settings.py
What: Derived runtime settings sourced from persisted configuration.
Why: Hand validated values to the pipeline without further file I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from abitrack.config.config import (
    MAX_WORKERS_DEFAULT,
    TOOL_TIMEOUT_DEFAULT,
    Config,
)
from abitrack.config.paths import default_data_dir, default_log_file


@dataclass(frozen=True, slots=True)
class ToolCommands:
    """Executable names for every external collaborator."""

    abi_dumper: str = "abi-dumper"
    abi_compliance_checker: str = "abi-compliance-checker"
    objdump: str = "objdump"
    rfcdiff: str = "rfcdiff"
    pkgdiff: str = "pkgdiff"
    gnuplot: str = "gnuplot"
    git: str = "git"
    svn: str = "svn"
    hg: str = "hg"


@dataclass(frozen=True, slots=True)
class TrackerSettings:
    """Validated settings for one process."""

    data_dir: Path
    log_file: Path
    tool_timeout: float
    max_workers: int
    tools: ToolCommands

    @classmethod
    def from_config(cls, config: Config) -> "TrackerSettings":
        """Derive settings, clamping invalid numbers to their defaults."""

        timeout = config.tool_timeout
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            timeout = TOOL_TIMEOUT_DEFAULT

        workers = config.max_workers
        if not isinstance(workers, int) or workers < 1:
            workers = MAX_WORKERS_DEFAULT

        return cls(
            data_dir=default_data_dir(config.data_dir),
            log_file=config.log_file or default_log_file(),
            tool_timeout=float(timeout),
            max_workers=workers,
            tools=ToolCommands(
                abi_dumper=config.abi_dumper,
                abi_compliance_checker=config.abi_compliance_checker,
                objdump=config.objdump,
                rfcdiff=config.rfcdiff,
                pkgdiff=config.pkgdiff,
                gnuplot=config.gnuplot,
                git=config.git,
                svn=config.svn,
                hg=config.hg,
            ),
        )


def load_settings() -> TrackerSettings:
    """Load the persisted configuration and derive runtime settings."""

    return TrackerSettings.from_config(Config.load())


__all__ = ["ToolCommands", "TrackerSettings", "load_settings"]
