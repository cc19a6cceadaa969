"""Sync configuration Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.exceptions import ValidationError
from app.services.sync.models import RepositoryRef

ConfigStatus = Literal["active", "inactive"]


def _normalize_repo(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return RepositoryRef.parse(value).full_name
    except ValidationError as e:
        raise ValueError(e.message) from e


class SyncConfigBase(BaseModel):
    """Fields shared by create requests and responses."""
    name: str = Field(min_length=1, max_length=100)
    source_repo: str
    target_repo: str
    target_branch: str = Field(default="main", min_length=1)
    auto_sync: bool = False
    sync_interval: int = Field(default=60, ge=1, description="Minutes between automatic runs")
    status: ConfigStatus = "active"

    @field_validator("source_repo", "target_repo")
    @classmethod
    def normalize_repo(cls, v: str) -> str:
        return _normalize_repo(v)


class SyncConfigCreate(SyncConfigBase):
    """Request model for creating a configuration."""
    github_token: Optional[str] = None


class SyncConfigUpdate(BaseModel):
    """Request model for updating a configuration (all fields optional)."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    source_repo: Optional[str] = None
    target_repo: Optional[str] = None
    target_branch: Optional[str] = Field(default=None, min_length=1)
    github_token: Optional[str] = None
    auto_sync: Optional[bool] = None
    sync_interval: Optional[int] = Field(default=None, ge=1)
    status: Optional[ConfigStatus] = None

    @field_validator("source_repo", "target_repo")
    @classmethod
    def normalize_repo(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_repo(v)


class SyncConfigResponse(SyncConfigBase):
    """
    Response model for a configuration.

    The stored token is never echoed back; ``has_token`` says whether one is set.
    """
    id: UUID
    user_id: UUID
    has_token: bool = False
    last_sync: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: dict) -> "SyncConfigResponse":
        data = {k: v for k, v in record.items() if k != "github_token"}
        return cls(**data, has_token=bool(record.get("github_token")))


class SyncConfigStats(BaseModel):
    total_configs: int
    active_configs: int
    total_syncs: int
    successful_syncs: int
    failed_syncs: int
