"""src/abitrack/features/pipeline/usecases/processing_types.py
Where: Pipeline feature usecases layer.
What: Shared enums and dataclasses for the build flow.
Why: Keep the orchestrator lean by centralising type definitions.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class PipelineEvent(StrEnum):
    """Structured event identifiers for pipeline logs."""

    RUN_START = "pipeline.run.start"
    RUN_COMPLETE = "pipeline.run.complete"
    RUN_INTERRUPTED = "pipeline.run.interrupted"
    STAGE_START = "pipeline.stage.start"
    ITEM_BUILT = "pipeline.item.built"
    ITEM_SKIPPED = "pipeline.item.skipped"
    ITEM_FAILED = "pipeline.item.failed"
    VERSION_UNAVAILABLE = "pipeline.version.unavailable"
    PAIR_SUMMARY = "pipeline.pair.summary"


class ItemStatus(StrEnum):
    SKIPPED = "skipped"
    BUILT = "built"
    FAILED = "failed"


@dataclass(slots=True)
class RunStats:
    """Mutable bookkeeping for one build run; safe to update from workers."""

    library: str
    start_time: float = field(default_factory=time.perf_counter)
    built: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, status: ItemStatus, label: str | None = None) -> None:
        with self._lock:
            match status:
                case ItemStatus.BUILT:
                    self.built += 1
                case ItemStatus.SKIPPED:
                    self.skipped += 1
                case ItemStatus.FAILED:
                    self.failed += 1
                    if label:
                        self.failures.append(label)

    def duration_seconds(self) -> float:
        return time.perf_counter() - self.start_time

    def summary_extra(self) -> dict[str, Any]:
        """Return a dictionary suitable for structured logging extras."""

        return {
            "library": self.library,
            "built": self.built,
            "skipped": self.skipped,
            "failed": self.failed,
            "duration_seconds": round(self.duration_seconds(), 4),
        }


__all__ = ["ItemStatus", "PipelineEvent", "RunStats"]
