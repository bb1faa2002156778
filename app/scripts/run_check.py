"""One-shot network time check for plain cron instead of Celery beat:
    */5 * * * *  cd /srv/get-a-life-alert && python -m app.scripts.run_check
"""

from __future__ import annotations

import asyncio

from app.services.monitor import get_orchestrator
from config import configure_logging
import db


async def main() -> None:
    try:
        await db.create_all()
        report = await get_orchestrator().check_and_alert()
    finally:
        await db.dispose_engine()

    if report.time_remaining is not None:
        print(
            "Remaining:", report.time_remaining.remaining_minutes, "minutes",
            f"({report.time_remaining.used_label}/{report.time_remaining.total_label})",
        )
    else:
        print("Router check failed:", report.error)
    for alert in report.sent:
        print("Alert sent", alert.number, alert.threshold_key)
    for alert in report.failed:
        print("Alert FAILED", alert.number, alert.threshold_key)


if __name__ == "__main__":  # pragma: no cover
    configure_logging()
    print("[CRON] run_check: job started")
    try:
        asyncio.run(main())
        print("[CRON] run_check: job completed successfully")
    except Exception as e:
        print(f"[CRON] run_check: job failed: {e}")
        raise SystemExit(1)
