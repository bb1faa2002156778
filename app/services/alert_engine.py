"""Decide which SMS alerts are due for the current check.

Everything here is pure: the only view of the outside world is the
`was_sent(number, date, threshold_key)` oracle passed in by the caller.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from app.types.alert_contract import Destination, PendingAlert, ThresholdRule, TimeRemaining

DedupQuery = Callable[[str, str, int], bool]

# Minute thresholds are >= 0, so -1 can never clash with a real one.
CONNECTIVITY_KEY = -1
CONNECTIVITY_MESSAGE = (
    "⚠️ Get A Life Alert: Cannot connect to Fritz router. Please check the system."
)


def select_threshold(
    destination: Destination,
    remaining_minutes: int,
    today: str,
    was_sent: DedupQuery,
) -> Optional[ThresholdRule]:
    """Highest threshold at or above *remaining_minutes* not yet sent today."""
    for rule in sorted(destination.thresholds, key=lambda r: r.minutes, reverse=True):
        if rule.minutes < remaining_minutes:
            continue
        if not was_sent(destination.number, today, rule.minutes):
            return rule
    return None


def decide(
    time_remaining: TimeRemaining,
    destinations: Iterable[Destination],
    today: str,
    was_sent: DedupQuery,
) -> List[PendingAlert]:
    """At most one alert per destination for this check."""
    alerts: List[PendingAlert] = []
    for dest in destinations:
        rule = select_threshold(dest, time_remaining.remaining_minutes, today, was_sent)
        if rule is not None:
            alerts.append(
                PendingAlert(number=dest.number, message=rule.message, threshold_key=rule.minutes)
            )
    return alerts


def decide_connectivity_alert(
    destinations: Iterable[Destination],
    today: str,
    was_sent: DedupQuery,
) -> List[PendingAlert]:
    return [
        PendingAlert(number=dest.number, message=CONNECTIVITY_MESSAGE, threshold_key=CONNECTIVITY_KEY)
        for dest in destinations
        if dest.is_admin and not was_sent(dest.number, today, CONNECTIVITY_KEY)
    ]
