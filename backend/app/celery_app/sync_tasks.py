"""
Celery tasks for repository sync.

1. run_sync_config - one run of a stored configuration
2. scan_due_syncs - Beat, every minute: queue auto-sync configs that are due
3. clean_old_sync_logs - Beat, daily: sync log retention
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import httpx

from app.core.config import LOG_RETENTION_DAYS, SYNC_RUN_TIMEOUT_SECONDS
from app.exceptions import (
    ConfigurationError,
    NotFoundError,
    SyncInProgressError,
    ValidationError,
)
from app.services.db import purge_old_logs
from app.services.sync.runner import SyncRunService

from .async_utils import run_async
from .celery import app
from .supabase_client import get_supabase_service
from .task_lock import get_task_lock
from .task_utils import NonRetryableError, RetryableError, build_task_result, task_context

logger = logging.getLogger(__name__)

SCAN_LOCK_KEY = "scan:due-syncs"
SCAN_LOCK_TTL = 55  # below the beat period


def do_sync_config(user_id: str, config_id: str) -> dict:
    """
    Run one configuration synchronously.

    Transport failures talking to Supabase are retryable; configuration
    problems are not. GitHub failures never reach here: the engine records
    them in the returned result.
    """
    try:
        runner = SyncRunService(get_supabase_service(), user_id)
        result = run_async(runner.run(config_id))
    except (ConfigurationError, ValidationError) as e:
        raise NonRetryableError(e.message) from e
    except httpx.TransportError as e:
        raise RetryableError(f"Supabase unavailable: {e}") from e
    return result.to_dict()


@app.task(
    bind=True,
    name="run_sync_config",
    max_retries=2,
    default_retry_delay=30,
    retry_backoff=True,
    acks_late=True,
    soft_time_limit=int(SYNC_RUN_TIMEOUT_SECONDS) + 300,
    time_limit=int(SYNC_RUN_TIMEOUT_SECONDS) + 600,
)
def run_sync_config(self, user_id: str, config_id: str):
    """Execute a sync config in the background; outcome also goes to sync_logs."""
    with task_context(self, config_id=config_id, user_id=user_id) as ctx:
        ctx.log_start("Running sync config")

        try:
            result = do_sync_config(user_id, config_id)
        except NotFoundError:
            logger.info(
                f"Sync config {config_id} no longer exists, skipping",
                extra=ctx.log_extra(reason="config_deleted"),
            )
            return build_task_result(ctx, success=True, skipped=True, reason="config_deleted")
        except SyncInProgressError as e:
            logger.info(e.message, extra=ctx.log_extra(reason="locked"))
            return build_task_result(ctx, success=True, skipped=True, reason="locked")
        except NonRetryableError as e:
            ctx.log_error(e)
            return build_task_result(ctx, success=False, error=str(e))
        except RetryableError as e:
            ctx.log_error(e)
            raise self.retry(exc=e)

        if result["success"]:
            ctx.log_success(files_processed=result["filesProcessed"])
        else:
            ctx.log_error(NonRetryableError(result["error"]), message="Sync run failed")
        return build_task_result(ctx, success=result["success"], error=result["error"], result=result)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def select_due_configs(
    configs: Iterable[dict],
    last_attempts: Dict[str, str],
    now: datetime,
) -> List[dict]:
    """
    Configs whose last activity + sync_interval has passed.

    Last activity is the later of ``last_sync`` and the newest log entry,
    so a failing config waits a full interval before it is tried again.
    Never-run configs are due immediately.
    """
    due = []
    for config in configs:
        moments = [
            m for m in (
                _parse_timestamp(config.get("last_sync")),
                _parse_timestamp(last_attempts.get(config["id"])),
            ) if m
        ]
        if not moments:
            due.append(config)
            continue
        interval = timedelta(minutes=config.get("sync_interval") or 60)
        if max(moments) + interval <= now:
            due.append(config)
    return due


def _latest_attempts(supabase, config_ids: List[str]) -> Dict[str, str]:
    """Newest sync_logs.created_at per config."""
    response = (
        supabase.table("sync_logs")
        .select("config_id, created_at")
        .in_("config_id", config_ids)
        .order("created_at", desc=True)
        .execute()
    )
    latest: Dict[str, str] = {}
    for row in response.data or []:
        latest.setdefault(row["config_id"], row["created_at"])
    return latest


@app.task(name="scan_due_syncs")
def scan_due_syncs():
    """Celery Beat task: queue every due auto-sync configuration."""
    task_lock = get_task_lock()

    # Beat may fire again before a slow scan finishes
    with task_lock.lock(SCAN_LOCK_KEY, ttl_seconds=SCAN_LOCK_TTL) as acquired:
        if not acquired:
            logger.debug("[SCAN] scan_due_syncs already running, skipping")
            return {"skipped": True}

        supabase = get_supabase_service()
        result = (
            supabase.table("sync_configs")
            .select("id, user_id, sync_interval, last_sync")
            .eq("auto_sync", True)
            .eq("status", "active")
            .execute()
        )
        configs = result.data or []
        if not configs:
            return {"due_configs": 0}

        last_attempts = _latest_attempts(supabase, [c["id"] for c in configs])
        due = select_due_configs(configs, last_attempts, datetime.now(timezone.utc))

        for config in due:
            run_sync_config.delay(config["user_id"], config["id"])

        if due:
            logger.info(f"[SCAN] Queued {len(due)} of {len(configs)} auto-sync configs")
        return {"due_configs": len(due)}


@app.task(name="clean_old_sync_logs")
def clean_old_sync_logs(retention_days: int = LOG_RETENTION_DAYS):
    """Celery Beat task: drop sync logs past the retention window."""
    removed = purge_old_logs(get_supabase_service(), retention_days)
    logger.info(f"Removed {removed} sync logs older than {retention_days} days")
    return {"deleted": removed, "retention_days": retention_days}
