"""Pipeline usecases: run context, stages and orchestration."""

from .context import DUMP_FILE_NAME, META_FILE_NAME, OutputLayout, RunContext
from .maintenance import CleanupPlan, MaintenanceService
from .orchestrator import PipelineOrchestrator, ProgressCallback
from .ports import PipelineTools
from .processing_types import ItemStatus, PipelineEvent, RunStats

__all__ = [
    "CleanupPlan",
    "DUMP_FILE_NAME",
    "ItemStatus",
    "META_FILE_NAME",
    "MaintenanceService",
    "OutputLayout",
    "PipelineEvent",
    "PipelineOrchestrator",
    "PipelineTools",
    "ProgressCallback",
    "RunContext",
    "RunStats",
]
