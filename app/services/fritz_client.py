"""
FRITZ!Box parental-control client.

Three pieces, used in this order by the monitor:
  • SessionAuthenticator – challenge/response login, holds the session id
  • UsageStateFetcher    – pulls the parental-control page for a session
  • parse_usage_state    – turns that page into a `TimeRemaining`
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Optional

import requests

from app.errors import AuthError, FetchError, ParseError, SessionExpired
from app.types.alert_contract import TimeRemaining

_LOGGER = logging.getLogger(__name__)

USER_AGENT = "get-a-life-alert/1.0"
DEFAULT_TIMEOUT = 10.0
REJECTED_SID = "0000000000000000"

_CHALLENGE_RE = re.compile(r"<Challenge>(.*?)</Challenge>")
_SID_RE = re.compile(r"<SID>(.*?)</SID>")
_LOGGED_OUT_RE = re.compile(r'(?:<SID>|"sid"\s*:\s*")0{16}\b')

_EXHAUSTED_RE = re.compile(r'<span title="Online time exhausted">')
_USAGE_RE = re.compile(r'<span title="(\d{2}:\d{2}) of (\d{1,2}:\d{2}) hours">')
_ROW_END = "</tr>"


def new_http_session() -> requests.Session:
    http = requests.Session()
    http.headers.update({"User-Agent": USER_AGENT})
    return http


def challenge_response(challenge: str, password: str) -> str:
    """`<challenge>-<md5(utf16le("<challenge>-<password>"))>`"""
    digest = hashlib.md5(f"{challenge}-{password}".encode("utf-16-le")).hexdigest()
    return f"{challenge}-{digest}"


# ──────────────────────────────────────────────────────────────────────────
# Authentication
# ──────────────────────────────────────────────────────────────────────────


class SessionAuthenticator:
    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        http: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self._http = http or new_http_session()
        self._timeout = timeout
        self._sid: Optional[str] = None

    @property
    def session(self) -> Optional[str]:
        return self._sid

    def invalidate(self) -> None:
        self._sid = None

    def authenticate(self) -> str:
        """Return the current session id, logging in first if none is held."""
        if self._sid is None:
            self._sid = self._login()
        return self._sid

    def _login(self) -> str:
        url = f"{self._base_url}/login_sid.lua"
        try:
            resp = self._http.get(url, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise AuthError(f"Failed to request login challenge: {exc}") from exc

        match = _CHALLENGE_RE.search(resp.text)
        if not match:
            raise AuthError("Could not extract challenge from router response")
        challenge = match.group(1)

        try:
            resp = self._http.post(
                url,
                data={
                    "username": self._username,
                    "response": challenge_response(challenge, self._password),
                },
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise AuthError(f"Failed to submit login response: {exc}") from exc

        match = _SID_RE.search(resp.text)
        if not match or match.group(1) == REJECTED_SID:
            raise AuthError("Router rejected the credentials", code="auth_rejected")

        _LOGGER.info("Authenticated with router at %s", self._base_url)
        return match.group(1)

    def probe(self) -> bool:
        """True when the router answers its start page with 200."""
        try:
            resp = self._http.get(f"{self._base_url}/", timeout=self._timeout)
        except requests.RequestException as exc:
            _LOGGER.warning("Router probe failed: %s", exc)
            return False
        return resp.status_code == 200


# ──────────────────────────────────────────────────────────────────────────
# Fetching
# ──────────────────────────────────────────────────────────────────────────


class UsageStateFetcher:
    def __init__(
        self,
        base_url: str,
        usage_page: str = "kidLis",
        http: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._base_url = base_url.rstrip("/")
        self._usage_page = usage_page
        self._http = http or new_http_session()
        self._timeout = timeout

    def fetch_raw_state(self, session: str) -> str:
        try:
            resp = self._http.post(
                f"{self._base_url}/data.lua",
                data={"xhr": "1", "sid": session, "page": self._usage_page},
                headers={
                    "Accept": "*/*",
                    "Accept-Language": "en-GB,en-US;q=0.9,en;q=0.8",
                    "Referer": f"{self._base_url}/",
                },
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise FetchError(f"Failed to fetch parental control data: {exc}") from exc

        if resp.status_code in (401, 403):
            raise SessionExpired(f"router answered HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise FetchError(f"HTTP {resp.status_code}: {resp.text[:200]}")
        if _LOGGED_OUT_RE.search(resp.text):
            raise SessionExpired()
        return resp.text


# ──────────────────────────────────────────────────────────────────────────
# Parsing
# ──────────────────────────────────────────────────────────────────────────


def _to_minutes(label: str) -> int:
    hours, minutes = label.split(":")
    return int(hours) * 60 + int(minutes)


def parse_usage_state(markup: str, device_name: str) -> TimeRemaining:
    """Extract today's online time for *device_name* from the kidLis page.

    The search starts at the first element whose text is the device name and
    stops at the end of that table row (or the document). An "exhausted"
    marker wins over any "HH:MM of HH:MM hours" label in the same region.
    """
    device_re = re.compile(rf"<[^>]*>\s*{re.escape(device_name)}\s*<[^>]*>")
    found = device_re.search(markup)
    if not found:
        raise ParseError("device not found", device=device_name)

    region = markup[found.start():]
    row_end = region.find(_ROW_END)
    if row_end != -1:
        region = region[:row_end]

    if _EXHAUSTED_RE.search(region):
        return TimeRemaining.exhausted()

    usage = _USAGE_RE.search(region)
    if usage:
        used, total = usage.groups()
        remaining = max(0, _to_minutes(total) - _to_minutes(used))
        return TimeRemaining(
            used_label=used,
            total_label=total,
            remaining_minutes=remaining,
            is_exhausted=remaining <= 0,
        )

    raise ParseError("no time information", device=device_name)
