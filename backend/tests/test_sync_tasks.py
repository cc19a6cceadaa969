from datetime import datetime, timezone

import httpx
import pytest

from app.celery_app import sync_tasks
from app.celery_app.celery import app as celery_app
from app.celery_app.task_utils import NonRetryableError, RetryableError
from app.exceptions import ConfigurationError, NotFoundError, SyncInProgressError

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def cfg(config_id, last_sync=None, interval=60):
    return {"id": config_id, "user_id": "u", "sync_interval": interval, "last_sync": last_sync}


# =============================================================================
# Due selection
# =============================================================================

def test_never_synced_is_due():
    assert sync_tasks.select_due_configs([cfg("a")], {}, NOW) == [cfg("a")]


def test_interval_elapsed():
    configs = [
        cfg("due", last_sync="2026-10-17T11:00:00+00:00"),
        cfg("recent", last_sync="2026-10-17T11:30:00Z"),
        cfg("short", last_sync="2026-10-17T11:55:00+00:00", interval=5),
    ]

    due = sync_tasks.select_due_configs(configs, {}, NOW)

    assert [c["id"] for c in due] == ["due", "short"]


def test_recent_failure_postpones_retry():
    configs = [cfg("failing", last_sync="2026-10-17T08:00:00+00:00")]
    attempts = {"failing": "2026-10-17T11:45:00+00:00"}

    assert sync_tasks.select_due_configs(configs, attempts, NOW) == []


def test_failure_without_success_counts_as_last_attempt():
    attempts = {"new": "2026-10-17T10:00:00+00:00"}

    assert sync_tasks.select_due_configs([cfg("new")], attempts, NOW) == [cfg("new")]


# =============================================================================
# Tasks
# =============================================================================

def test_beat_schedule_registers_sync_tasks():
    tasks = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
    assert tasks == {"scan_due_syncs", "clean_old_sync_logs"}


def test_run_sync_config_returns_result(monkeypatch):
    monkeypatch.setattr(
        sync_tasks, "do_sync_config",
        lambda user_id, config_id: {"success": True, "filesProcessed": 4, "error": None},
    )

    result = sync_tasks.run_sync_config("u", "c")

    assert result["success"] is True
    assert result["result"]["filesProcessed"] == 4
    assert "duration_ms" in result


@pytest.mark.parametrize("error, reason", [
    (NotFoundError("Sync config"), "config_deleted"),
    (SyncInProgressError("octo/target@main"), "locked"),
])
def test_run_sync_config_skips(monkeypatch, error, reason):
    def boom(user_id, config_id):
        raise error

    monkeypatch.setattr(sync_tasks, "do_sync_config", boom)

    result = sync_tasks.run_sync_config("u", "c")

    assert result["skipped"] is True
    assert result["reason"] == reason


def test_run_sync_config_non_retryable(monkeypatch):
    def boom(user_id, config_id):
        raise NonRetryableError("Please configure GitHub token first")

    monkeypatch.setattr(sync_tasks, "do_sync_config", boom)

    result = sync_tasks.run_sync_config("u", "c")

    assert result["success"] is False
    assert "GitHub token" in result["error"]


def test_run_sync_config_retryable_is_retried(monkeypatch):
    def boom(user_id, config_id):
        raise RetryableError("Supabase unavailable")

    monkeypatch.setattr(sync_tasks, "do_sync_config", boom)

    # called directly (no worker), retry() re-raises the original error
    with pytest.raises(RetryableError):
        sync_tasks.run_sync_config("u", "c")


def test_do_sync_config_classifies_errors(monkeypatch, fake_supabase):
    monkeypatch.setattr(sync_tasks, "get_supabase_service", lambda: fake_supabase)

    class Runner:
        def __init__(self, supabase, user_id):
            pass

        async def run(self, config_id):
            raise errors.pop(0)

    errors = [ConfigurationError("GitHub", "token"), httpx.ConnectError("refused")]
    monkeypatch.setattr(sync_tasks, "SyncRunService", Runner)

    with pytest.raises(NonRetryableError):
        sync_tasks.do_sync_config("u", "c")
    with pytest.raises(RetryableError):
        sync_tasks.do_sync_config("u", "c")


def test_scan_queues_due_configs(monkeypatch, fake_supabase, fake_lock):
    fake_supabase.respond("sync_configs", "select", [
        {"id": "a", "user_id": "u1", "sync_interval": 60, "last_sync": None},
        {"id": "b", "user_id": "u2", "sync_interval": 60, "last_sync": datetime.now(timezone.utc).isoformat()},
    ])
    fake_supabase.respond("sync_logs", "select", [])
    queued = []
    monkeypatch.setattr(sync_tasks, "get_supabase_service", lambda: fake_supabase)
    monkeypatch.setattr(sync_tasks, "get_task_lock", lambda: fake_lock)
    monkeypatch.setattr(sync_tasks.run_sync_config, "delay", lambda *args: queued.append(args))

    result = sync_tasks.scan_due_syncs()

    assert result == {"due_configs": 1}
    assert queued == [("u1", "a")]
    query = fake_supabase.queries("sync_configs")[0]
    assert query.has("eq", "auto_sync", True)
    assert query.has("eq", "status", "active")
    assert fake_lock.held == {}


def test_scan_skips_when_already_running(monkeypatch, fake_lock):
    fake_lock.held[sync_tasks.SCAN_LOCK_KEY] = "1"
    monkeypatch.setattr(sync_tasks, "get_task_lock", lambda: fake_lock)

    assert sync_tasks.scan_due_syncs() == {"skipped": True}


def test_clean_old_sync_logs(monkeypatch, fake_supabase):
    fake_supabase.respond("sync_logs", "delete", [{"id": "1"}, {"id": "2"}])
    monkeypatch.setattr(sync_tasks, "get_supabase_service", lambda: fake_supabase)

    assert sync_tasks.clean_old_sync_logs(retention_days=3) == {"deleted": 2, "retention_days": 3}
