"""Pydantic models shared by the router client, the alert engine and the
persistence/status layers.

Config models validate the JSON monitor config once at load time, so the
rest of the backend can treat them as already-checked structures.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_E164 = re.compile(r"^\+[1-9]\d{1,14}$")


# ──────────────────────────────
# Monitor configuration
# ──────────────────────────────


class ThresholdRule(BaseModel):
    """Send `message` once the device has `minutes` or less left today."""

    model_config = ConfigDict(frozen=True)

    minutes: int = Field(ge=0)
    message: str

    @field_validator("message")
    def _non_empty(cls, v: str):  # noqa: N805
        if not v.strip():
            raise ValueError("message must be a non-empty string")
        return v


class Destination(BaseModel):
    """A phone number with its own threshold rules."""

    model_config = ConfigDict(frozen=True)

    number: str
    is_admin: bool = False
    thresholds: List[ThresholdRule] = Field(default_factory=list)

    @field_validator("number")
    def _validate_number(cls, v: str):  # noqa: N805
        v = v.strip()
        if not _E164.match(v):
            raise ValueError(f"number '{v}' is not an E.164 phone number")
        return v

    @model_validator(mode="after")
    def _unique_minutes(self):
        """Two rules with the same minutes would make the pick order-dependent."""
        seen: set[int] = set()
        for rule in self.thresholds:
            if rule.minutes in seen:
                raise ValueError(
                    f"duplicate threshold of {rule.minutes} minutes for {self.number}"
                )
            seen.add(rule.minutes)
        return self


class RouterConfig(BaseModel):
    url: str
    device_name: str
    usage_page: str = "kidLis"

    @field_validator("url")
    def _strip_slash(cls, v: str):  # noqa: N805
        if not v.startswith(("http://", "https://")):
            raise ValueError("router url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("device_name")
    def _device_name(cls, v: str):  # noqa: N805
        if not v.strip():
            raise ValueError("device_name must be a non-empty string")
        return v.strip()


class MonitorConfig(BaseModel):
    router: RouterConfig
    destinations: List[Destination]

    @model_validator(mode="after")
    def _cross_field_checks(self):
        if not self.destinations:
            raise ValueError("at least one destination must be configured")
        if not any(d.is_admin for d in self.destinations):
            raise ValueError("at least one admin number must be configured")
        numbers = [d.number for d in self.destinations]
        duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
        if duplicates:
            raise ValueError(f"destination numbers listed more than once: {', '.join(duplicates)}")
        return self

    @property
    def admins(self) -> List[Destination]:
        return [d for d in self.destinations if d.is_admin]


# ──────────────────────────────
# Per-check values
# ──────────────────────────────


class TimeRemaining(BaseModel):
    """Online time left for the monitored device, as read from the router."""

    model_config = ConfigDict(frozen=True)

    used_label: str
    total_label: str
    remaining_minutes: int = Field(ge=0)
    is_exhausted: bool

    @classmethod
    def exhausted(cls) -> "TimeRemaining":
        return cls(used_label="N/A", total_label="N/A", remaining_minutes=0, is_exhausted=True)


class PendingAlert(BaseModel):
    """One SMS the engine decided to send during this check."""

    model_config = ConfigDict(frozen=True)

    number: str
    message: str
    threshold_key: int


class CheckReport(BaseModel):
    """What one monitoring check saw and did."""

    checked_at: datetime
    time_remaining: Optional[TimeRemaining] = None
    error: Optional[str] = None
    sent: List[PendingAlert] = Field(default_factory=list)
    failed: List[PendingAlert] = Field(default_factory=list)

    @property
    def connected(self) -> bool:
        return self.time_remaining is not None


class StatusReport(BaseModel):
    connected: bool
    time_remaining: Optional[TimeRemaining] = None
    error: Optional[str] = None
