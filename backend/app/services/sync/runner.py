"""
Runs a stored sync configuration end to end.

Shared by the SSE endpoint and the Celery worker:
load config -> pick token -> take the per-target lease -> log "in_progress"
-> run engine -> log the outcome -> stamp last_sync -> release lease.
"""

import logging
import uuid
from typing import Optional

import httpx
from supabase import Client

from app.celery_app.task_lock import TaskLock, get_task_lock
from app.core.config import GITHUB_TOKEN, SYNC_RUN_TIMEOUT_SECONDS
from app.exceptions import ConfigurationError, SyncInProgressError
from app.services.db import SyncConfigService, SyncLogService
from app.services.github_client import GitHubClient

from .engine import RepositorySyncEngine
from .models import RepositoryRef, SyncRunResult
from .progress import ProgressCallback

logger = logging.getLogger(__name__)

# Lease outlives the run deadline so publish still runs under it
LOCK_TTL_MARGIN_SECONDS = 300


def sync_lock_key(target: RepositoryRef, branch: str) -> str:
    return f"sync:{target.full_name}:{branch}"


class SyncRunService:
    """Execute one configuration for one user."""

    def __init__(
        self,
        supabase: Client,
        user_id: str,
        task_lock: Optional[TaskLock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        engine_options: Optional[dict] = None,
    ):
        self.configs = SyncConfigService(supabase, user_id)
        self.logs = SyncLogService(supabase, user_id)
        self.user_id = user_id
        self._task_lock = task_lock
        self._transport = transport
        self._engine_options = engine_options or {}

    @property
    def task_lock(self) -> TaskLock:
        if self._task_lock is None:
            self._task_lock = get_task_lock()
        return self._task_lock

    async def run(
        self,
        config_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SyncRunResult:
        """
        Run the configuration.

        Raises before any GitHub traffic for a missing config, a missing
        token, an unparsable repository or a busy target. Everything after
        that is reported through the returned result and the sync log. A
        result whose outcome could not be recorded is still returned.
        """
        config = self.configs.require_config(config_id)
        token = config.get("github_token") or GITHUB_TOKEN
        if not token:
            raise ConfigurationError("GitHub", "token")

        source = RepositoryRef.parse(config["source_repo"])
        target = RepositoryRef.parse(config["target_repo"])
        branch = config.get("target_branch") or "main"

        lock_key = sync_lock_key(target, branch)
        holder = f"{config_id}:{uuid.uuid4().hex[:8]}"
        ttl = int(SYNC_RUN_TIMEOUT_SECONDS) + LOCK_TTL_MARGIN_SECONDS
        if not self.task_lock.acquire(lock_key, ttl_seconds=ttl, task_id=holder):
            raise SyncInProgressError(f"{target.full_name}@{branch}")

        try:
            logger.info(
                f"Running sync config {config_id}: {source} -> {target}@{branch}",
                extra={"config_id": config_id},
            )
            self.logs.create_log(
                config_id, "in_progress", f"Sync started: {source} -> {target}@{branch}"
            )
            async with GitHubClient(token, transport=self._transport) as github:
                engine = RepositorySyncEngine(github, **self._engine_options)
                result = await engine.sync(
                    source, target, on_progress=on_progress, target_branch=branch
                )
            try:
                self._record(config_id, source, target, result)
            except Exception as e:
                logger.error(
                    f"Could not record outcome of sync config {config_id}: {e}",
                    extra={"config_id": config_id, "error": str(e)},
                    exc_info=True,
                )
            return result
        finally:
            self.task_lock.release(lock_key, task_id=holder)

    def _record(
        self,
        config_id: str,
        source: RepositoryRef,
        target: RepositoryRef,
        result: SyncRunResult,
    ) -> None:
        if result.success:
            self.logs.create_log(
                config_id,
                "success",
                f"Synced {source} to {target}@{result.branch}: "
                f"{result.files_processed} files updated",
                files_changed=result.files_processed,
                details=_details(result),
            )
            self.configs.mark_synced(config_id)
        else:
            self.logs.create_log(
                config_id,
                "error",
                result.error or "Sync failed",
                details=_details(result),
            )
            logger.warning(
                f"Sync config {config_id} failed: {result.error}",
                extra={"config_id": config_id, "error": result.error},
            )


def _details(result: SyncRunResult) -> str:
    if not result.success:
        return f"duration={result.duration_ms}ms"
    return (
        f"commit={result.commit_sha} unchanged={result.files_unchanged} "
        f"kept={result.files_kept} skipped={result.files_skipped} "
        f"dropped={result.files_dropped} fragmented={result.fragmented_files} "
        f"duration={result.duration_ms}ms"
    )
