"""Tests for settings module behavior."""

from __future__ import annotations

from pathlib import Path

from abitrack.config.config import (
    MAX_WORKERS_DEFAULT,
    TOOL_TIMEOUT_DEFAULT,
    Config,
)
from abitrack.config.settings import TrackerSettings, load_settings


def test_settings_use_portable_defaults(config_runtime_env: Path) -> None:
    """Unset paths resolve to the repository-local defaults."""

    settings = load_settings()

    root = config_runtime_env.resolve()
    assert settings.data_dir == root / ".data"
    assert settings.log_file == root / "logs" / "abitrack.log"
    assert settings.tools.objdump == "objdump"


def test_invalid_numbers_are_clamped(config_runtime_env: Path) -> None:
    """Non-positive timeouts and worker counts fall back to defaults."""

    _ = config_runtime_env
    settings = TrackerSettings.from_config(Config(tool_timeout=0, max_workers=-3))

    assert settings.tool_timeout == TOOL_TIMEOUT_DEFAULT
    assert settings.max_workers == MAX_WORKERS_DEFAULT


def test_tool_commands_follow_config(config_runtime_env: Path) -> None:
    """Executable overrides flow into the tool command table."""

    _ = config_runtime_env
    settings = TrackerSettings.from_config(
        Config(abi_dumper="/opt/abi-dumper.pl", git="/usr/local/bin/git")
    )

    assert settings.tools.abi_dumper == "/opt/abi-dumper.pl"
    assert settings.tools.git == "/usr/local/bin/git"
    assert settings.tools.svn == "svn"
