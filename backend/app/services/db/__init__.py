"""Database service modules."""

from .sync_configs import SyncConfigService
from .sync_logs import SyncLogService, purge_old_logs

__all__ = [
    "SyncConfigService",
    "SyncLogService",
    "purge_old_logs",
]
