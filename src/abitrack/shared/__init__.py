"""Shared primitives used across feature packages."""

from .errors import (
    AccessError,
    ModuleError,
    ProfileError,
    ToolInvocationError,
    ToolTimeoutError,
    TrackerError,
)

__all__ = [
    "AccessError",
    "ModuleError",
    "ProfileError",
    "ToolInvocationError",
    "ToolTimeoutError",
    "TrackerError",
]
