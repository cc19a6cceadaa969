"""Sync configuration CRUD endpoints."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response

from app.dependencies import create_service_dependency
from app.schemas.sync_configs import (
    SyncConfigCreate,
    SyncConfigResponse,
    SyncConfigStats,
    SyncConfigUpdate,
)
from app.services.db import SyncConfigService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync-configs", tags=["sync-configs"])

get_config_service = create_service_dependency(SyncConfigService)


@router.get("", response_model=List[SyncConfigResponse])
async def list_sync_configs(service: SyncConfigService = Depends(get_config_service)):
    """All configurations of the caller, newest first."""
    return [SyncConfigResponse.from_record(c) for c in service.list_configs()]


@router.post("", response_model=SyncConfigResponse, status_code=201)
async def create_sync_config(
    body: SyncConfigCreate,
    service: SyncConfigService = Depends(get_config_service),
):
    created = service.create_config(body.model_dump())
    return SyncConfigResponse.from_record(created)


# Declared before /{config_id} so "stats" is not taken for an id
@router.get("/stats", response_model=SyncConfigStats)
async def get_sync_stats(service: SyncConfigService = Depends(get_config_service)):
    return service.get_stats()


@router.get("/{config_id}", response_model=SyncConfigResponse)
async def get_sync_config(
    config_id: str,
    service: SyncConfigService = Depends(get_config_service),
):
    return SyncConfigResponse.from_record(service.require_config(config_id))


@router.put("/{config_id}", response_model=SyncConfigResponse)
async def update_sync_config(
    config_id: str,
    body: SyncConfigUpdate,
    service: SyncConfigService = Depends(get_config_service),
):
    """Partial update: omitted fields keep their value."""
    updated = service.update_config(config_id, body.model_dump(exclude_unset=True))
    return SyncConfigResponse.from_record(updated)


@router.delete("/{config_id}", status_code=204)
async def delete_sync_config(
    config_id: str,
    service: SyncConfigService = Depends(get_config_service),
):
    """Delete a configuration together with its logs."""
    service.delete_config(config_id)
    return Response(status_code=204)
