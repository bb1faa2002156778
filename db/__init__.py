from .db import (
    create_all,
    dispose_engine,
    record_sent_alert,
    was_alert_sent,
    sent_alert_keys,
    recent_alerts,
    record_event,
    recent_events,
    cleanup_old_records,
)  # noqa: F401
