"""
Sync configuration database service.

A configuration names a source repository, a target repository/branch and
an optional per-config GitHub token. Deleting a configuration also deletes
its run history.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.exceptions import DuplicateError, NotFoundError

from .base import BaseDbService
from .sync_logs import SyncLogService

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "name",
    "source_repo",
    "target_repo",
    "target_branch",
    "github_token",
    "auto_sync",
    "sync_interval",
    "status",
}


class SyncConfigService(BaseDbService):
    """Service for sync_configs table operations."""

    table_name = "sync_configs"

    def _row_to_dict(self, row: dict) -> dict:
        return {
            "id": row["id"],
            "user_id": row["user_id"],
            "name": row["name"],
            "source_repo": row["source_repo"],
            "target_repo": row["target_repo"],
            "target_branch": row.get("target_branch") or "main",
            "github_token": row.get("github_token"),
            "auto_sync": bool(row.get("auto_sync")),
            "sync_interval": row.get("sync_interval") or 60,
            "status": row.get("status") or "active",
            "last_sync": row.get("last_sync"),
            "created_at": row["created_at"],
            "updated_at": row.get("updated_at"),
        }

    def list_configs(self) -> List[dict]:
        """All configurations of the user, newest first."""
        configs = self._get_many(order_by="created_at", order_desc=True)
        logger.debug(f"Loaded {len(configs)} sync configs")
        return configs

    def get_config(self, config_id: str) -> Optional[dict]:
        return self._get_one({"id": config_id})

    def require_config(self, config_id: str) -> dict:
        config = self.get_config(config_id)
        if not config:
            raise NotFoundError("Sync config")
        return config

    def config_name_exists(self, name: str, exclude_id: Optional[str] = None) -> bool:
        query = self._query("id").eq("name", name)
        if exclude_id:
            query = query.neq("id", exclude_id)
        response = query.execute()
        return bool(response.data)

    def create_config(self, config: dict) -> dict:
        """Create a configuration; names are unique per user."""
        if self.config_name_exists(config["name"]):
            raise DuplicateError("config name")

        data = {
            "name": config["name"],
            "source_repo": config["source_repo"],
            "target_repo": config["target_repo"],
            "target_branch": config.get("target_branch") or "main",
            "github_token": config.get("github_token"),
            "auto_sync": config.get("auto_sync", False),
            "sync_interval": config.get("sync_interval", 60),
            "status": config.get("status", "active"),
        }

        try:
            created = self._insert_one(data)
        except Exception as e:
            if self._is_duplicate_error(e):
                raise DuplicateError("config name") from e
            raise

        logger.info(f"Created sync config {created['id']} ({created['name']})")
        return created

    def update_config(self, config_id: str, updates: dict) -> dict:
        """Partial update; unknown and None fields are ignored."""
        existing = self.require_config(config_id)

        update_data = self._prepare_update_data(updates, UPDATABLE_FIELDS)
        if not update_data:
            return existing

        new_name = update_data.get("name")
        if new_name and new_name != existing["name"] and \
                self.config_name_exists(new_name, exclude_id=config_id):
            raise DuplicateError("config name")

        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        updated = self._update_one(config_id, update_data)
        if not updated:
            raise NotFoundError("Sync config")

        logger.info(f"Updated sync config {config_id}: {sorted(update_data)}")
        return updated

    def delete_config(self, config_id: str) -> None:
        """Delete a configuration and, first, all of its logs."""
        self.require_config(config_id)

        removed_logs = SyncLogService(self.supabase, self.user_id).delete_logs_for_config(config_id)
        self._delete_where("id", config_id)

        logger.info(f"Deleted sync config {config_id} and {removed_logs} logs")

    def mark_synced(self, config_id: str, when: Optional[datetime] = None) -> None:
        moment = when or datetime.now(timezone.utc)
        self._update_one(config_id, {"last_sync": moment.isoformat()})

    def get_stats(self) -> dict:
        """Counters for the dashboard header."""
        logs = SyncLogService(self.supabase, self.user_id)
        return {
            "total_configs": self._count(),
            "active_configs": self._count({"status": "active"}),
            "total_syncs": logs.count_logs(),
            "successful_syncs": logs.count_logs(status="success"),
            "failed_syncs": logs.count_logs(status="error"),
        }
