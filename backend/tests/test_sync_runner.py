import pytest

from app.exceptions import ConfigurationError, NotFoundError, SyncInProgressError, ValidationError
from app.services.sync import runner as runner_module
from app.services.sync.runner import SyncRunService, sync_lock_key
from app.services.sync.models import RepositoryRef

USER = "11111111-1111-1111-1111-111111111111"
CONFIG = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def make_runner(fake_supabase, fake_lock, fake_github, make_config_row):
    def factory(**row_overrides):
        fake_supabase.respond("sync_configs", "select", [make_config_row(**row_overrides)])
        return SyncRunService(
            fake_supabase, USER, task_lock=fake_lock, transport=fake_github.transport
        )
    return factory


def inserted_log(fake_supabase) -> dict:
    insert = fake_supabase.queries("sync_logs", "insert")[-1]
    return next(op[1][0] for op in insert.ops if op[0] == "insert")


async def test_successful_run_logs_and_stamps(make_runner, fake_supabase, fake_lock, fake_github):
    fake_github.seed("octo/source", {"a.txt": b"a", "b.txt": b"b"})
    fake_github.create_repo("octo/target")
    fake_supabase.respond("sync_logs", "insert", [{
        "id": "l", "config_id": CONFIG, "status": "success", "created_at": "2026-10-17T00:00:00Z",
    }])

    result = await make_runner().run(CONFIG)

    assert result.success, result.error
    log = inserted_log(fake_supabase)
    assert log["status"] == "success"
    assert log["files_changed"] == 2
    assert log["user_id"] == USER
    stamp = fake_supabase.queries("sync_configs", "update")[0]
    assert "last_sync" in next(op[1][0] for op in stamp.ops if op[0] == "update")
    assert fake_lock.held == {}
    assert fake_lock.history[sync_lock_key(RepositoryRef("octo", "target"), "main")] == 1


async def test_run_is_logged_as_in_progress_first(make_runner, fake_supabase, fake_github):
    fake_github.seed("octo/source", {"a.txt": b"a"})
    fake_github.create_repo("octo/target")
    fake_supabase.respond("sync_logs", "insert", [{
        "id": "l", "config_id": CONFIG, "status": "in_progress", "created_at": "2026-10-17T00:00:00Z",
    }])

    await make_runner().run(CONFIG)

    inserts = [
        next(op[1][0] for op in query.ops if op[0] == "insert")
        for query in fake_supabase.queries("sync_logs", "insert")
    ]
    assert [log["status"] for log in inserts] == ["in_progress", "success"]
    assert inserts[0]["message"] == "Sync started: octo/source -> octo/target@main"


async def test_result_survives_log_failure(make_runner, fake_supabase, fake_github, fake_lock):
    fake_github.seed("octo/source", {"a.txt": b"a"})
    fake_github.create_repo("octo/target")
    runner = make_runner()
    statuses = []

    def create_log(config_id, status, message, **kwargs):
        statuses.append(status)
        if status != "in_progress":
            raise RuntimeError("Supabase unavailable")

    runner.logs.create_log = create_log

    result = await runner.run(CONFIG)

    assert result.success, result.error
    assert statuses == ["in_progress", "success"]
    assert fake_github.files("octo/target") == {"a.txt": b"a"}
    assert fake_lock.held == {}


async def test_failed_run_logs_error_without_stamp(make_runner, fake_supabase, fake_lock, fake_github):
    fake_github.create_repo("octo/source")
    fake_github.create_repo("octo/target")
    fake_supabase.respond("sync_logs", "insert", [{
        "id": "l", "config_id": CONFIG, "status": "error", "created_at": "2026-10-17T00:00:00Z",
    }])

    result = await make_runner().run(CONFIG)

    assert not result.success
    log = inserted_log(fake_supabase)
    assert log["status"] == "error"
    assert "has no commits" in log["message"]
    assert fake_supabase.queries("sync_configs", "update") == []
    assert fake_lock.held == {}


async def test_busy_target_is_rejected(make_runner, fake_lock, fake_github):
    fake_lock.held["sync:octo/target:main"] = "someone"

    with pytest.raises(SyncInProgressError):
        await make_runner().run(CONFIG)

    assert fake_github.calls == []
    assert fake_lock.held == {"sync:octo/target:main": "someone"}


async def test_uses_fallback_token(make_runner, monkeypatch, fake_github, fake_supabase):
    monkeypatch.setattr(runner_module, "GITHUB_TOKEN", "env-token")
    fake_github.valid_tokens = {"env-token"}
    fake_github.seed("octo/source", {"a.txt": b"a"})
    fake_github.create_repo("octo/target")
    fake_supabase.respond("sync_logs", "insert", [{
        "id": "l", "config_id": CONFIG, "status": "success", "created_at": "2026-10-17T00:00:00Z",
    }])

    result = await make_runner(github_token=None).run(CONFIG)

    assert result.success, result.error


async def test_missing_token(make_runner, monkeypatch):
    monkeypatch.setattr(runner_module, "GITHUB_TOKEN", None)

    with pytest.raises(ConfigurationError):
        await make_runner(github_token=None).run(CONFIG)


async def test_malformed_repository(make_runner):
    with pytest.raises(ValidationError):
        await make_runner(source_repo="not-a-repo").run(CONFIG)


async def test_unknown_config(fake_supabase, fake_lock):
    fake_supabase.respond("sync_configs", "select", [])

    with pytest.raises(NotFoundError):
        await SyncRunService(fake_supabase, USER, task_lock=fake_lock).run("missing")
