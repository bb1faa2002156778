"""Celery application driving the periodic router checks.

Start the beat scheduler and a single-slot worker with:
    celery -A app.celery_app beat -l info
    celery -A app.celery_app worker -Q monitor -l info --concurrency=1

One worker slot keeps checks strictly sequential.
"""

from celery import Celery, signals
from celery.schedules import crontab

from config import configure_logging, settings

BROKER_URL = settings.REDIS_URL

celery_app = Celery("get_a_life_alert", broker=BROKER_URL, backend=BROKER_URL)


@signals.setup_logging.connect
def _setup_logging(**kwargs):
    configure_logging()


def crontab_from_expr(expr: str) -> crontab:
    """Turn a 5-field cron expression ("*/5 * * * *") into a Celery crontab."""
    fields = expr.split()
    if len(fields) != 5:
        raise ValueError(f"cron expression must have 5 fields, got {expr!r}")
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.worker_prefetch_multiplier = 1

celery_app.conf.task_routes = {
    "app.workers.monitor.check": {"queue": "monitor"},
    "app.workers.monitor.cleanup": {"queue": "monitor"},
}

celery_app.conf.beat_schedule = {
    "check-network-time": {
        "task": "app.workers.monitor.check",
        "schedule": crontab_from_expr(settings.CRON_SCHEDULE),
    },
    "cleanup-old-records": {
        "task": "app.workers.monitor.cleanup",
        "schedule": crontab(hour=3, minute=15),
    },
}

# --- Ensure tasks are registered ---
import app.workers.monitor
