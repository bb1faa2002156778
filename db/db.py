"""
Async DB helpers for sent-alert and system-event records.
Uses SQLAlchemy 2.0 (asyncpg for Postgres, aiosqlite for the default SQLite
file) – no raw SQL strings in app code.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncGenerator

from sqlalchemy import (
    DateTime, Index, String, Text, UniqueConstraint, delete, func, select
)
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column
)
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_SQLITE_URL = "sqlite+aiosqlite:///./data/alerts.db"

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or DEFAULT_SQLITE_URL
    if url.startswith("sqlite") and "+aiosqlite" not in url:
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    elif "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def get_engine():
    global _engine
    if _engine is None:
        url = _build_url()
        if url.startswith("sqlite"):
            db_file = url.split(":///", 1)[-1]
            if db_file and db_file != ":memory:":
                Path(db_file).parent.mkdir(parents=True, exist_ok=True)
            _engine = create_async_engine(url)
        else:
            _engine = create_async_engine(url, pool_size=5, max_overflow=5)
    return _engine

def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()

# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

class AlertLog(Base):
    __tablename__ = "alert_logs"

    id:             Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    phone_number:   Mapped[str] = mapped_column(String(32))
    message:        Mapped[str] = mapped_column(Text)
    threshold_key:  Mapped[int]
    alert_date:     Mapped[str] = mapped_column(String(10))   # YYYY-MM-DD
    sent_at:        Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("phone_number", "alert_date", "threshold_key", name="uq_alert_logs_once_per_day"),
        Index("ix_alert_logs_date", "alert_date"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "phone_number": self.phone_number,
            "message": self.message,
            "threshold_key": self.threshold_key,
            "alert_date": self.alert_date,
            "sent_at": self.sent_at.isoformat(),
        }


class SystemLog(Base):
    __tablename__ = "system_logs"

    id:        Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event:     Mapped[str] = mapped_column(String(64))
    message:   Mapped[str] = mapped_column(Text)
    level:     Mapped[str] = mapped_column(String(16), default="info")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_system_logs_timestamp", "timestamp"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "message": self.message,
            "level": self.level,
            "timestamp": self.timestamp.isoformat(),
        }


# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (run once at startup or from Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──────────────────────────────────────────────────────────────────────
# 5. CRUD helpers
# ──────────────────────────────────────────────────────────────────────

# 5.1 Sent alerts ------------------------------------------------------
@retry(
    wait=wait_random_exponential(multiplier=0.5, max=5),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(OperationalError),
    reraise=True,
)
async def record_sent_alert(
    phone_number: str,
    alert_date: str,
    threshold_key: int,
    message: str,
    sent_at: datetime,
) -> bool:
    """Store a delivered alert. False if the same alert is already stored."""
    row = AlertLog(
        phone_number=phone_number,
        message=message,
        threshold_key=threshold_key,
        alert_date=alert_date,
        sent_at=sent_at,
    )
    async for s in get_session():
        s.add(row)
        try:
            await s.commit()
        except IntegrityError:
            await s.rollback()
            _LOGGER.warning(
                "Alert %s for %s on %s already recorded", threshold_key, phone_number, alert_date
            )
            return False
    return True


async def was_alert_sent(phone_number: str, alert_date: str, threshold_key: int) -> bool:
    async for s in get_session():
        stmt = (
            select(func.count())
            .select_from(AlertLog)
            .where(
                AlertLog.phone_number == phone_number,
                AlertLog.alert_date == alert_date,
                AlertLog.threshold_key == threshold_key,
            )
        )
        res = await s.execute(stmt)
        return res.scalar_one() > 0


async def sent_alert_keys(alert_date: str) -> set[tuple[str, int]]:
    """All (phone_number, threshold_key) pairs already sent on *alert_date*."""
    async for s in get_session():
        stmt = select(AlertLog.phone_number, AlertLog.threshold_key).where(
            AlertLog.alert_date == alert_date
        )
        res = await s.execute(stmt)
        return {(number, key) for number, key in res.all()}


async def recent_alerts(limit: int = 10) -> list[dict]:
    async for s in get_session():
        stmt = select(AlertLog).order_by(AlertLog.sent_at.desc()).limit(limit)
        res = await s.execute(stmt)
        return [a.to_dict() for a in res.scalars()]


# 5.2 System events ----------------------------------------------------
async def record_event(event: str, message: str, timestamp: datetime, level: str = "info"):
    async for s in get_session():
        s.add(SystemLog(event=event, message=message, timestamp=timestamp, level=level))
        await s.commit()


async def recent_events(limit: int = 20) -> list[dict]:
    async for s in get_session():
        stmt = select(SystemLog).order_by(SystemLog.timestamp.desc()).limit(limit)
        res = await s.execute(stmt)
        return [e.to_dict() for e in res.scalars()]


# 5.3 Retention --------------------------------------------------------
async def cleanup_old_records(days_to_keep: int = 30) -> tuple[int, int]:
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days_to_keep)
    async for s in get_session():
        alerts = await s.execute(
            delete(AlertLog).where(AlertLog.alert_date < cutoff.date().isoformat())
        )
        events = await s.execute(delete(SystemLog).where(SystemLog.timestamp < cutoff))
        await s.commit()
    removed = (alerts.rowcount or 0, events.rowcount or 0)
    await record_event(
        "cleanup",
        f"Cleaned up {removed[0]} alert logs and {removed[1]} system logs "
        f"older than {days_to_keep} days",
        now,
    )
    return removed


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
    _session_maker = None
