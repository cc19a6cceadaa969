"""
Shared utilities for Celery tasks.

Provides:
- Retryable/NonRetryable error hierarchy
- Task execution context for timing and logging
- Result builder for standardized task returns
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Error Hierarchy
# =============================================================================

class TaskError(Exception):
    """Base error for all Celery task errors."""
    pass


class RetryableError(TaskError):
    """
    Error that should trigger task retry.

    Examples: Supabase unavailable, Redis timeouts.
    """
    pass


class NonRetryableError(TaskError):
    """
    Error that should NOT trigger retry.

    Examples: missing token, malformed repository name, deleted config.
    """
    pass


def is_retryable(error: Exception) -> bool:
    return isinstance(error, RetryableError)


def calculate_duration_ms(start_time: datetime) -> int:
    return int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)


# =============================================================================
# Task Execution Context
# =============================================================================

@dataclass
class TaskContext:
    """
    Execution context for a Celery task.

    Usage:
        with task_context(self, config_id=config_id) as ctx:
            ctx.log_start("Running sync")
            result = do_work()
            ctx.log_success("Completed")
            return build_task_result(ctx, success=True, **result)
    """
    task_id: str
    task_name: str
    attempt: int
    max_attempts: int
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_celery_task(cls, task, **extra) -> "TaskContext":
        return cls(
            task_id=task.request.id or "unknown",
            task_name=task.name or "unknown",
            attempt=task.request.retries + 1,
            max_attempts=(task.max_retries or 0) + 1,
            extra=extra,
        )

    @property
    def duration_ms(self) -> int:
        return calculate_duration_ms(self.start_time)

    def log_extra(self, **kwargs) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_name": self.task_name,
            "attempt": self.attempt,
            **self.extra,
            **kwargs,
        }

    def log_start(self, message: Optional[str] = None):
        msg = message or f"Starting {self.task_name}"
        logger.info(f"{msg}: attempt={self.attempt}/{self.max_attempts}", extra=self.log_extra())

    def log_success(self, message: Optional[str] = None, **kwargs):
        msg = message or f"Completed {self.task_name}"
        logger.info(msg, extra=self.log_extra(success=True, duration_ms=self.duration_ms, **kwargs))

    def log_error(self, error: Exception, message: Optional[str] = None, **kwargs):
        """Retryable errors log at WARNING, the rest at ERROR."""
        msg = message or f"Error in {self.task_name}: {error}"
        log_func = logger.warning if is_retryable(error) else logger.error
        log_func(
            msg,
            extra=self.log_extra(
                success=False,
                error=str(error),
                error_type=type(error).__name__,
                duration_ms=self.duration_ms,
                **kwargs,
            ),
        )


@contextmanager
def task_context(task, **extra) -> Generator[TaskContext, None, None]:
    yield TaskContext.from_celery_task(task, **extra)


def build_task_result(
    ctx: TaskContext,
    success: bool,
    error: Optional[str] = None,
    **kwargs,
) -> Dict[str, Any]:
    """Standardized task result dict with duration_ms."""
    result = {
        "success": success,
        "duration_ms": ctx.duration_ms,
        **kwargs,
    }
    if error:
        result["error"] = error
    return result
