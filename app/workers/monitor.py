"""Celery tasks for the periodic network-time check and record retention."""

from __future__ import annotations

import asyncio
import logging

from app.celery_app import celery_app
from app.services.monitor import get_orchestrator
from config import settings
import db

_LOGGER = logging.getLogger(__name__)


async def _run_check() -> dict:
    try:
        await db.create_all()
        report = await get_orchestrator().check_and_alert()
    finally:
        # the async engine is bound to this asyncio.run loop
        await db.dispose_engine()
    return report.model_dump(mode="json")


async def _run_cleanup(days: int) -> tuple[int, int]:
    try:
        return await db.cleanup_old_records(days)
    finally:
        await db.dispose_engine()


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.monitor.check", bind=True)
def check(self):  # noqa: D401
    """Run one check; failures are logged and the next beat tick tries again."""
    try:
        return asyncio.run(_run_check())
    except Exception:  # noqa: BLE001
        _LOGGER.exception("Network time check failed")
        return None


@celery_app.task(name="app.workers.monitor.cleanup", bind=True, max_retries=3)
def cleanup(self, days: int | None = None):  # noqa: D401
    """Drop alert and event rows older than the retention window."""
    try:
        alerts, events = asyncio.run(_run_cleanup(days or settings.RETENTION_DAYS))
    except Exception as exc:  # noqa: BLE001
        raise self.retry(exc=exc, countdown=60)
    _LOGGER.info("Removed %d alert rows and %d event rows", alerts, events)
    return {"alerts": alerts, "events": events}
