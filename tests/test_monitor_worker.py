import pytest
from celery.schedules import crontab

from app.celery_app import celery_app, crontab_from_expr
from app.types.alert_contract import CheckReport
from app.workers import monitor as monitor_worker


def test_crontab_from_expr():
    assert crontab_from_expr("*/5 * * * *") == crontab(minute="*/5")
    with pytest.raises(ValueError):
        crontab_from_expr("*/5 * *")


def test_beat_schedule_registers_tasks():
    tasks = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
    assert tasks == {"app.workers.monitor.check", "app.workers.monitor.cleanup"}
    assert "app.workers.monitor.check" in celery_app.tasks


def test_check_task_runs_one_check(monkeypatch):
    class StubOrchestrator:
        calls = 0

        async def check_and_alert(self):
            StubOrchestrator.calls += 1
            return CheckReport(checked_at="2026-10-18T17:00:00+00:00", error="auth: down")

    created = []

    async def fake_dispose():
        pass

    async def fake_create_all():
        created.append(True)

    monkeypatch.setattr(monitor_worker, "get_orchestrator", lambda: StubOrchestrator())
    monkeypatch.setattr(monitor_worker.db, "dispose_engine", fake_dispose)
    monkeypatch.setattr(monitor_worker.db, "create_all", fake_create_all)

    result = monitor_worker.check.apply().get()
    assert StubOrchestrator.calls == 1
    assert created == [True]
    assert result["error"] == "auth: down"


def test_check_task_swallows_and_logs_failures(monkeypatch):
    class BrokenOrchestrator:
        async def check_and_alert(self):
            raise RuntimeError("database is locked")

    created = []

    async def fake_dispose():
        pass

    async def fake_create_all():
        created.append(True)

    monkeypatch.setattr(monitor_worker, "get_orchestrator", lambda: BrokenOrchestrator())
    monkeypatch.setattr(monitor_worker.db, "dispose_engine", fake_dispose)
    monkeypatch.setattr(monitor_worker.db, "create_all", fake_create_all)

    assert monitor_worker.check.apply().get() is None
