"""
Sync log database service.

One row per sync run outcome. Rows older than the retention window
(LOG_RETENTION_DAYS, 3 by default) are purged by clean_old_logs().
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from app.core.config import LOG_RETENTION_DAYS

from .base import BaseDbService

logger = logging.getLogger(__name__)

LOG_STATUSES = ("success", "error", "in_progress")
DEFAULT_LOG_LIMIT = 100


class SyncLogService(BaseDbService):
    """Service for sync_logs table operations."""

    table_name = "sync_logs"

    def _row_to_dict(self, row: dict) -> dict:
        return {
            "id": row["id"],
            "config_id": row["config_id"],
            "status": row["status"],
            "message": row.get("message") or "",
            "details": row.get("details"),
            "files_changed": row.get("files_changed") or 0,
            "created_at": row["created_at"],
        }

    def create_log(
        self,
        config_id: str,
        status: str,
        message: str,
        files_changed: int = 0,
        details: Optional[str] = None,
    ) -> dict:
        if status not in LOG_STATUSES:
            raise ValueError(f"Invalid log status: {status}")

        log = self._insert_one({
            "config_id": config_id,
            "status": status,
            "message": message,
            "details": details,
            "files_changed": files_changed,
        })
        logger.debug(f"Created {status} log for config {config_id}")
        return log

    def list_logs(
        self, config_id: Optional[str] = None, limit: int = DEFAULT_LOG_LIMIT
    ) -> List[dict]:
        """Newest first, optionally for one configuration."""
        filters = {"config_id": config_id} if config_id else None
        return self._get_many(filters, order_by="created_at", order_desc=True, limit=limit)

    def count_logs(self, status: Optional[str] = None) -> int:
        return self._count({"status": status} if status else None)

    def delete_logs_for_config(self, config_id: str) -> int:
        return self._delete_where("config_id", config_id)

    def clean_old_logs(self, retention_days: int = LOG_RETENTION_DAYS) -> int:
        """Delete this user's logs older than the retention window."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        response = (
            self._table()
            .delete()
            .eq("user_id", self.user_id)
            .lt("created_at", cutoff.isoformat())
            .execute()
        )
        removed = len(response.data or [])
        logger.info(f"Removed {removed} sync logs older than {retention_days} days")
        return removed


def purge_old_logs(supabase, retention_days: int = LOG_RETENTION_DAYS) -> int:
    """
    Delete every user's logs older than the retention window.

    Needs a service role client; used by the daily cleanup task.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    response = (
        supabase.table(SyncLogService.table_name)
        .delete()
        .lt("created_at", cutoff.isoformat())
        .execute()
    )
    return len(response.data or [])
