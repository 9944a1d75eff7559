"""Configuration management for abitrack."""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar

from abitrack.config.paths import default_config_path
from abitrack.platform.filesystem import write_text_file
from abitrack.platform.logging import logger


TOOL_TIMEOUT_DEFAULT: float = 900.0
MAX_WORKERS_DEFAULT: int = 1
ABI_DUMPER_MIN_VERSION: str = "1.1"
ABI_CC_MIN_VERSION: str = "2.2"


def _path_field(default: Path | None = None) -> Any:
    """Create a field for Path objects with proper conversion."""
    return field(default=default, metadata={"path": True})


@dataclass
class Config:
    """Tracker configuration persisted as TOML."""

    # Root directory for stores and generated artifacts
    data_dir: Path | None = _path_field()

    # Log file path
    log_file: Path | None = _path_field()

    # Seconds before an external tool call is abandoned
    tool_timeout: float = TOOL_TIMEOUT_DEFAULT

    # Worker threads for the dump and compare stages
    max_workers: int = MAX_WORKERS_DEFAULT

    # External tool executables
    abi_dumper: str = "abi-dumper"
    abi_compliance_checker: str = "abi-compliance-checker"
    objdump: str = "objdump"
    rfcdiff: str = "rfcdiff"
    pkgdiff: str = "pkgdiff"
    gnuplot: str = "gnuplot"
    git: str = "git"
    svn: str = "svn"
    hg: str = "hg"

    _instance: ClassVar["Config | None"] = None
    _loaded_from: ClassVar[Path | None] = None

    def __post_init__(self) -> None:
        """Convert string paths to ``Path`` objects using field metadata."""

        for f in fields(self):
            if not f.metadata.get("path", False):
                continue
            value = getattr(self, f.name)
            if isinstance(value, str):
                setattr(self, f.name, Path(value) if value.strip() else None)

    def save(self) -> None:
        """Save configuration to file."""
        config_dict = asdict(self)

        for key, value in config_dict.items():
            if isinstance(value, Path):
                config_dict[key] = str(value)

        try:
            target = default_config_path()
            write_text_file(target, self._render_toml(config_dict))
            logger.info("Configuration saved to %s", target)
        except OSError as e:
            logger.error("Failed to save configuration: %s", e)
            raise

    def _render_toml(self, config: dict[str, Any]) -> str:
        """Render configuration as TOML with inline guidance."""

        lines: list[str] = []

        lines.append("# abitrack configuration file")
        lines.append("")

        lines.append("# Directory holding per-library stores and generated artifacts (optional)")
        lines.append("# Overridden by the ABITRACK_DATA_DIR environment variable when unset here")
        lines.append('# Example: data_dir = "/srv/abi-tracker"')
        if config["data_dir"] is not None:
            lines.append(f"data_dir = {self._format_toml_value(config['data_dir'])}")
        lines.append("")

        lines.append("# Log file path (optional)")
        lines.append('# Example: log_file = "/var/log/abitrack.log"')
        if config["log_file"] is not None:
            lines.append(f"log_file = {self._format_toml_value(config['log_file'])}")
        lines.append("")

        lines.append("# Seconds before a single external tool call is treated as failed")
        lines.append(f"tool_timeout = {self._format_toml_value(config['tool_timeout'])}")
        lines.append("")

        lines.append("# Worker threads used for ABI dumps and per-object comparisons (1 = sequential)")
        lines.append(f"max_workers = {self._format_toml_value(config['max_workers'])}")
        lines.append("")

        lines.append("# External tool executables")
        for key in (
            "abi_dumper",
            "abi_compliance_checker",
            "objdump",
            "rfcdiff",
            "pkgdiff",
            "gnuplot",
            "git",
            "svn",
            "hg",
        ):
            lines.append(f"{key} = {self._format_toml_value(config[key])}")
        lines.append("")

        return "\n".join(lines)

    def _format_toml_value(self, value: Any) -> str:
        """Format a value for TOML serialization."""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (str, Path)):
            return f'"{str(value)}"'
        return str(value)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from file, creating a default one on first use."""

        if cls._instance is not None:
            return cls._instance

        config_file = default_config_path()

        try:
            if config_file.exists():
                with open(config_file, "rb") as f:
                    config_dict = tomllib.load(f)

                # Ensure new fields have defaults if absent (backward compatibility)
                _ = config_dict.setdefault("tool_timeout", TOOL_TIMEOUT_DEFAULT)
                _ = config_dict.setdefault("max_workers", MAX_WORKERS_DEFAULT)

                known = {f.name for f in fields(cls)}
                unknown = sorted(set(config_dict) - known)
                if unknown:
                    logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
                    for key in unknown:
                        del config_dict[key]

                logger.debug("Configuration loaded from %s", config_file)
                instance = cls(**config_dict)
                cls._instance = instance
                cls._loaded_from = config_file
                return instance

            config = cls()
            config.save()
            logger.info("Created default configuration at %s", config_file)
            cls._instance = config
            cls._loaded_from = config_file
            return config

        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error("Failed to load configuration: %s", e)
            raise


__all__ = [
    "ABI_CC_MIN_VERSION",
    "ABI_DUMPER_MIN_VERSION",
    "Config",
    "MAX_WORKERS_DEFAULT",
    "TOOL_TIMEOUT_DEFAULT",
]
