"""
One monitoring check: router login → usage page → parse → decide → SMS → record.

Router, parse and SMS failures never escape `check_and_alert`; they turn into
the connectivity-failure path (admins get one SMS per day) plus an event row.
Errors from the store while reading today's dedup state do propagate, so no
alert goes out without a dedup check.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from app.errors import AuthError, FetchError, ParseError, SendError, SessionExpired
from app.services import alert_engine
from app.services.fritz_client import (
    SessionAuthenticator,
    UsageStateFetcher,
    new_http_session,
    parse_usage_state,
)
from app.types.alert_contract import (
    CheckReport,
    MonitorConfig,
    PendingAlert,
    StatusReport,
    TimeRemaining,
)
from app.utils import sms
from config import load_monitor_config, settings
import db

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageFailure:
    """Why usage state could not be obtained: stage is auth, fetch or parse."""

    stage: str
    error: Exception

    def describe(self) -> str:
        return f"{self.stage}: {self.error}"


class CheckOrchestrator:
    def __init__(
        self,
        config: MonitorConfig,
        authenticator: SessionAuthenticator,
        fetcher: UsageStateFetcher,
        sender: Optional[Callable[[str, str], bool]] = None,
        store: Any = None,
        tz: str = "UTC",
    ):
        self._config = config
        self._authenticator = authenticator
        self._fetcher = fetcher
        self._send = sender or sms.send_sms
        self._store = store or db
        self._tz = ZoneInfo(tz)

    @property
    def authenticator(self) -> SessionAuthenticator:
        return self._authenticator

    # ──────────────────────────────────────────────────────────────────
    # Usage state (auth → fetch → parse)
    # ──────────────────────────────────────────────────────────────────

    async def _fetch_with_reauth(self) -> str | UsageFailure:
        try:
            session = await asyncio.to_thread(self._authenticator.authenticate)
        except AuthError as exc:
            return UsageFailure("auth", exc)

        try:
            return await asyncio.to_thread(self._fetcher.fetch_raw_state, session)
        except SessionExpired:
            _LOGGER.info("Router session expired; re-authenticating once")
        except FetchError as exc:
            return UsageFailure("fetch", exc)

        self._authenticator.invalidate()
        try:
            session = await asyncio.to_thread(self._authenticator.authenticate)
            return await asyncio.to_thread(self._fetcher.fetch_raw_state, session)
        except AuthError as exc:
            return UsageFailure("auth", exc)
        except FetchError as exc:
            # a second SessionExpired lands here too: no third attempt
            return UsageFailure("fetch", exc)

    async def obtain_usage(self) -> TimeRemaining | UsageFailure:
        raw = await self._fetch_with_reauth()
        if isinstance(raw, UsageFailure):
            return raw
        try:
            return parse_usage_state(raw, self._config.router.device_name)
        except ParseError as exc:
            return UsageFailure("parse", exc)

    async def current_status(self) -> StatusReport:
        usage = await self.obtain_usage()
        if isinstance(usage, UsageFailure):
            return StatusReport(connected=False, error=usage.describe())
        return StatusReport(connected=True, time_remaining=usage)

    # ──────────────────────────────────────────────────────────────────
    # Full check
    # ──────────────────────────────────────────────────────────────────

    async def check_and_alert(self, now: Optional[datetime] = None) -> CheckReport:
        now = now or datetime.now(self._tz)
        today = now.date().isoformat()
        await self._store.record_event("check_start", "Starting network time check", now, "info")

        usage = await self.obtain_usage()

        already_sent = await self._store.sent_alert_keys(today)

        def was_sent(number: str, date: str, threshold_key: int) -> bool:
            return date == today and (number, threshold_key) in already_sent

        if isinstance(usage, UsageFailure):
            _LOGGER.warning("Check failed at %s stage: %s", usage.stage, usage.error)
            await self._store.record_event(
                "check_error", f"Error during check: {usage.describe()}", now, "error"
            )
            alerts = alert_engine.decide_connectivity_alert(
                self._config.admins, today, was_sent
            )
            report = CheckReport(checked_at=now, error=usage.describe())
        else:
            await self._store.record_event(
                "time_check",
                f"Time remaining: {usage.remaining_minutes} minutes "
                f"({usage.used_label}/{usage.total_label})",
                now,
                "info",
            )
            alerts = alert_engine.decide(usage, self._config.destinations, today, was_sent)
            report = CheckReport(checked_at=now, time_remaining=usage)

        for alert in alerts:
            if was_sent(alert.number, today, alert.threshold_key):
                continue
            try:
                await self._deliver(alert)
            except SendError as exc:
                report.failed.append(alert)
                try:
                    await self._store.record_event(
                        "alert_failed", f"Failed to send alert to {exc.number}: {exc}", now, "error"
                    )
                except Exception:  # noqa: BLE001
                    _LOGGER.exception("Could not record failed alert for %s", alert.number)
                continue
            report.sent.append(alert)
            already_sent.add((alert.number, alert.threshold_key))
            await self._record(alert, today)

        if report.error is not None:
            await self._store.record_event(
                "fritz_connection_error", "Cannot connect to Fritz router", now, "error"
            )
        return report

    async def _deliver(self, alert: PendingAlert) -> None:
        try:
            ok = await asyncio.to_thread(self._send, alert.number, alert.message)
        except Exception as exc:  # noqa: BLE001
            raise SendError(f"transport error: {exc}", alert.number) from exc
        if not ok:
            raise SendError("transport reported failure", alert.number)

    async def _record(self, alert: PendingAlert, today: str) -> None:
        sent_at = datetime.now(self._tz)
        try:
            recorded = await self._store.record_sent_alert(
                alert.number, today, alert.threshold_key, alert.message, sent_at
            )
            if not recorded:
                _LOGGER.warning(
                    "Alert %s for %s was already recorded today", alert.threshold_key, alert.number
                )
                await self._store.record_event(
                    "alert_duplicate",
                    f"Alert to {alert.number} for threshold {alert.threshold_key} "
                    "was already recorded today",
                    sent_at,
                    "warning",
                )
                return
            await self._store.record_event(
                "alert_sent",
                f"Alert sent to {alert.number} for threshold {alert.threshold_key}",
                sent_at,
                "info",
            )
        except Exception:  # noqa: BLE001
            # SMS already went out; keep going with the other destinations
            _LOGGER.exception("Could not record alert %s for %s", alert.threshold_key, alert.number)


# ──────────────────────────────────────────────────────────────────────
# Process-wide instance
# ──────────────────────────────────────────────────────────────────────
_orchestrator: CheckOrchestrator | None = None


def build_orchestrator(config: Optional[MonitorConfig] = None) -> CheckOrchestrator:
    config = config or load_monitor_config()
    router = config.router
    http = new_http_session()
    return CheckOrchestrator(
        config=config,
        authenticator=SessionAuthenticator(
            router.url,
            settings.FRITZ_USER,
            settings.FRITZ_PASSWD,
            http=http,
            timeout=settings.FRITZ_TIMEOUT,
        ),
        fetcher=UsageStateFetcher(
            router.url, router.usage_page, http=http, timeout=settings.FRITZ_TIMEOUT
        ),
        tz=settings.DEFAULT_TIMEZONE,
    )


def get_orchestrator() -> CheckOrchestrator:
    """Lazily build one orchestrator so the router session outlives a single check."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator
