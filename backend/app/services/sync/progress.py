"""
Progress reporting for sync runs.

The engine emits ProgressEvent values into a plain callback. Delivery is
fire-and-forget: no acknowledgment, no ordering guarantee to consumers, and a
failing sink never affects the run. Consumers should show the latest event.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class SyncStep(str, Enum):
    """Sync run steps."""
    LISTING = "listing"
    COPYING = "copying"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    step: SyncStep
    files_processed: int
    total_files: int
    percentage: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "filesProcessed": self.files_processed,
            "totalFiles": self.total_files,
            "percentage": self.percentage,
            "message": self.message,
        }


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Wraps an optional callback so the engine can always just emit()."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def emit(
        self,
        step: SyncStep,
        message: str,
        files_processed: int = 0,
        total_files: int = 0,
        percentage: int = 0,
    ) -> None:
        if self.callback is None:
            return
        event = ProgressEvent(
            step=step,
            files_processed=files_processed,
            total_files=total_files,
            percentage=percentage,
            message=message,
        )
        try:
            self.callback(event)
        except Exception as e:
            logger.debug(f"Progress callback failed: {e}")


def copy_percentage(done: int, total: int) -> int:
    """Copy phase spans 10%..90% of the bar."""
    if total <= 0:
        return 90
    return round(done / total * 80) + 10
