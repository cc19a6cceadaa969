"""Sync log Pydantic schemas."""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class SyncLogResponse(BaseModel):
    """One recorded sync run."""
    id: UUID
    config_id: UUID
    status: Literal["success", "error", "in_progress"]
    message: str
    details: Optional[str] = None
    files_changed: int = 0
    created_at: datetime


class SyncLogCleanupResponse(BaseModel):
    deleted: int
    retention_days: int
