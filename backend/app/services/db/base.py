"""
Base database service with unified patterns.

Provides:
- Automatic user isolation via _query()
- Unified single/multiple record fetching
- Consistent datetime handling
- Standardized error detection

Usage:
    class SyncLogService(BaseDbService):
        table_name = "sync_logs"

        def get_log(self, log_id: str) -> Optional[dict]:
            return self._get_one({"id": log_id})
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import Client

logger = logging.getLogger(__name__)


class BaseDbService:
    """
    Base class for sync_configs / sync_logs services.

    Subclasses set `table_name` and may override `_row_to_dict()`.
    """

    table_name: str = ""

    def __init__(self, supabase: Client, user_id: str):
        self.supabase = supabase
        self.user_id = user_id

    # =========================================================================
    # Query Builders (automatic user isolation)
    # =========================================================================

    def _table(self):
        return self.supabase.table(self.table_name)

    def _query(self, select: str = "*", count: Optional[str] = None):
        """Start a user-scoped SELECT query."""
        if count:
            return self._table().select(select, count=count).eq("user_id", self.user_id)
        return self._table().select(select).eq("user_id", self.user_id)

    # =========================================================================
    # Unified Record Fetching
    # =========================================================================

    def _get_one(self, filters: Dict[str, Any], select: str = "*") -> Optional[dict]:
        """
        Get a single record or None.

        Uses .limit(1) instead of .single() so an empty result is not an error.
        """
        try:
            query = self._query(select)
            for key, value in filters.items():
                query = query.eq(key, value)
            response = query.limit(1).execute()
        except Exception as e:
            if self._is_not_found_error(e):
                return None
            logger.error(
                f"Error fetching {self.table_name}",
                extra={"filters": filters, "error": str(e)},
            )
            raise

        if response.data:
            return self._row_to_dict(response.data[0])
        return None

    def _get_many(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        order_desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        query = self._query()

        for key, value in (filters or {}).items():
            query = query.eq(key, value)
        if order_by:
            query = query.order(order_by, desc=order_desc)
        if limit:
            query = query.limit(limit)

        response = query.execute()
        return [self._row_to_dict(row) for row in response.data or []]

    def _count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Exact row count without fetching rows."""
        query = self._query("id", count="exact")
        for key, value in (filters or {}).items():
            query = query.eq(key, value)
        response = query.limit(1).execute()
        return response.count or 0

    # =========================================================================
    # Write Helpers
    # =========================================================================

    def _prepare_update_data(
        self,
        updates: Dict[str, Any],
        allowed_fields: Optional[set] = None,
    ) -> Dict[str, Any]:
        """Drop None values and unknown fields, serialize datetimes."""
        update_data = {}
        for key, value in updates.items():
            if value is None:
                continue
            if allowed_fields and key not in allowed_fields:
                continue
            if isinstance(value, datetime):
                value = value.isoformat()
            update_data[key] = value
        return update_data

    def _insert_one(self, data: dict) -> dict:
        response = self._table().insert(self._dict_to_row(data)).execute()
        if not response.data:
            raise RuntimeError(f"Insert into {self.table_name} returned no row")
        return self._row_to_dict(response.data[0])

    def _update_one(self, record_id: str, updates: Dict[str, Any]) -> Optional[dict]:
        """Update one record; returns the new row, or None if nothing matched."""
        response = (
            self._table()
            .update(updates)
            .eq("id", record_id)
            .eq("user_id", self.user_id)
            .execute()
        )
        if response.data:
            return self._row_to_dict(response.data[0])
        return None

    def _delete_where(self, column: str, value: Any) -> int:
        response = (
            self._table()
            .delete()
            .eq(column, value)
            .eq("user_id", self.user_id)
            .execute()
        )
        return len(response.data or [])

    # =========================================================================
    # Row Conversion
    # =========================================================================

    def _row_to_dict(self, row: dict) -> dict:
        return row

    def _dict_to_row(self, data: dict) -> dict:
        """Add user_id and serialize datetimes."""
        row = {"user_id": self.user_id}
        for key, value in data.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            row[key] = value
        return row

    # =========================================================================
    # Error Detection
    # =========================================================================

    @staticmethod
    def _is_not_found_error(e: Exception) -> bool:
        """PostgREST 'no rows' error (PGRST116)."""
        return "PGRST116" in str(e)

    @staticmethod
    def _is_duplicate_error(e: Exception) -> bool:
        """Postgres unique violation (23505)."""
        return "23505" in str(e)
