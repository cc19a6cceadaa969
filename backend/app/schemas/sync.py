"""Sync run schemas."""

from pydantic import BaseModel


class SyncEnqueueResponse(BaseModel):
    """A background run was queued; its outcome lands in the sync logs."""
    task_id: str
    config_id: str
    status: str = "queued"
