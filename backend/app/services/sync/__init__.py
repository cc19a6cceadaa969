"""
Repository sync service module.

- RepositorySyncEngine: one-way mirror of a source repository into a target branch
- SyncRunService: runs a stored configuration (lease, sync log, last_sync)
- ProgressReporter / SSEProgressReporter: progress sinks
"""

from .engine import RepositorySyncEngine, sync_repositories
from .models import RepositoryRef, SyncRunResult
from .progress import ProgressEvent, ProgressReporter, SyncStep
from .runner import SyncRunService
from .sse_reporter import SSEProgressReporter

__all__ = [
    "RepositorySyncEngine",
    "sync_repositories",
    "RepositoryRef",
    "SyncRunResult",
    "ProgressEvent",
    "ProgressReporter",
    "SyncStep",
    "SyncRunService",
    "SSEProgressReporter",
]
