"""
Sync run endpoints.

POST /sync/{config_id} runs the configuration inside the request and streams
progress as Server-Sent Events:
- progress: {step, filesProcessed, totalFiles, percentage, message}
- done: SyncRunResult (camelCase)
- error: {message}

POST /sync/{config_id}/enqueue hands the run to a Celery worker instead.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from supabase import Client

from app.celery_app.sync_tasks import run_sync_config
from app.dependencies import get_user_supabase, verify_auth
from app.exceptions import AppException
from app.schemas.sync import SyncEnqueueResponse
from app.services.db import SyncConfigService
from app.services.sync import SSEProgressReporter, SyncRunService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def get_sync_runner(
    user=Depends(verify_auth),
    supabase: Client = Depends(get_user_supabase),
) -> SyncRunService:
    return SyncRunService(supabase, user.user.id)


@router.post("/{config_id}")
async def run_sync(config_id: str, runner: SyncRunService = Depends(get_sync_runner)):
    """Run a configuration now and stream its progress."""
    # Unknown config is a plain 404, before the stream starts
    runner.configs.require_config(config_id)

    reporter = SSEProgressReporter()

    async def sync_task():
        try:
            result = await runner.run(config_id, on_progress=reporter)
            if result.success:
                reporter.report_done(result)
            else:
                reporter.report_error(result.error or "Sync failed")
        except AppException as e:
            reporter.report_error(e.message)
        except Exception as e:
            logger.error(f"Sync run {config_id} crashed: {e}", exc_info=True)
            reporter.report_error(str(e))
        finally:
            reporter.signal_end()

    async def generate_events():
        task = asyncio.create_task(sync_task())
        try:
            async for chunk in reporter.stream():
                yield chunk
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(
        generate_events(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@router.post("/{config_id}/enqueue", response_model=SyncEnqueueResponse, status_code=202)
async def enqueue_sync(
    config_id: str,
    user=Depends(verify_auth),
    supabase: Client = Depends(get_user_supabase),
):
    """Queue a background run on the high priority queue."""
    SyncConfigService(supabase, user.user.id).require_config(config_id)

    task = run_sync_config.apply_async(args=[user.user.id, config_id], queue="high")
    logger.info(f"Queued sync config {config_id} as task {task.id}")
    return SyncEnqueueResponse(task_id=task.id, config_id=config_id)
