"""Incremental build pipeline over a library's versions."""

from .usecases import (
    CleanupPlan,
    ItemStatus,
    MaintenanceService,
    OutputLayout,
    PipelineEvent,
    PipelineOrchestrator,
    PipelineTools,
    RunContext,
    RunStats,
)

__all__ = [
    "CleanupPlan",
    "ItemStatus",
    "MaintenanceService",
    "OutputLayout",
    "PipelineEvent",
    "PipelineOrchestrator",
    "PipelineTools",
    "RunContext",
    "RunStats",
]
