"""Sync log endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.config import LOG_RETENTION_DAYS
from app.dependencies import create_service_dependency
from app.schemas.sync_logs import SyncLogCleanupResponse, SyncLogResponse
from app.services.db import SyncLogService
from app.services.db.sync_logs import DEFAULT_LOG_LIMIT

router = APIRouter(prefix="/sync-logs", tags=["sync-logs"])

get_log_service = create_service_dependency(SyncLogService)


@router.get("", response_model=List[SyncLogResponse])
async def list_sync_logs(
    config_id: Optional[str] = None,
    limit: int = Query(DEFAULT_LOG_LIMIT, ge=1, le=1000),
    service: SyncLogService = Depends(get_log_service),
):
    """Newest first, optionally for one configuration."""
    return service.list_logs(config_id=config_id, limit=limit)


@router.delete("/old", response_model=SyncLogCleanupResponse)
async def clean_old_sync_logs(service: SyncLogService = Depends(get_log_service)):
    deleted = service.clean_old_logs(LOG_RETENTION_DAYS)
    return SyncLogCleanupResponse(deleted=deleted, retention_days=LOG_RETENTION_DAYS)
