import pytest
import requests

from app.errors import AuthError, FetchError, SessionExpired
from app.services.fritz_client import (
    SessionAuthenticator,
    UsageStateFetcher,
    challenge_response,
)

BASE = "http://192.168.178.1"


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeHttp:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, gets=(), posts=()):
        self.gets = list(gets)
        self.posts = list(posts)
        self.calls = []

    def _next(self, queue):
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._next(self.gets)

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self._next(self.posts)


def _challenge(value="1234567z"):
    return FakeResponse(f"<SessionInfo><SID>0000000000000000</SID><Challenge>{value}</Challenge></SessionInfo>")


def _sid(value):
    return FakeResponse(f"<SessionInfo><SID>{value}</SID><Challenge>abc</Challenge></SessionInfo>")


def test_challenge_response_matches_router_algorithm():
    # reference pair from the FRITZ!Box session-id documentation
    assert challenge_response("1234567z", "äbc") == "1234567z-9e224a41eeefa284df7bb0f26c2913e2"


def test_authenticate_submits_username_and_response():
    http = FakeHttp(gets=[_challenge()], posts=[_sid("b2f7c3c14b5e6a5d")])
    auth = SessionAuthenticator(BASE, "kid-admin", "äbc", http=http)

    assert auth.authenticate() == "b2f7c3c14b5e6a5d"
    assert auth.session == "b2f7c3c14b5e6a5d"

    method, url, kwargs = http.calls[1]
    assert (method, url) == ("POST", f"{BASE}/login_sid.lua")
    assert kwargs["data"] == {
        "username": "kid-admin",
        "response": "1234567z-9e224a41eeefa284df7bb0f26c2913e2",
    }


def test_session_is_reused_until_invalidated():
    http = FakeHttp(
        gets=[_challenge(), _challenge()],
        posts=[_sid("1111111111111111"), _sid("2222222222222222")],
    )
    auth = SessionAuthenticator(BASE, "u", "p", http=http)
    assert auth.authenticate() == "1111111111111111"
    assert auth.authenticate() == "1111111111111111"
    assert len(http.calls) == 2

    auth.invalidate()
    assert auth.session is None
    assert auth.authenticate() == "2222222222222222"


def test_all_zero_sid_is_rejection():
    http = FakeHttp(gets=[_challenge()], posts=[_sid("0000000000000000")])
    auth = SessionAuthenticator(BASE, "u", "wrong", http=http)
    with pytest.raises(AuthError) as info:
        auth.authenticate()
    assert info.value.code == "auth_rejected"
    assert auth.session is None


def test_missing_challenge_is_auth_error():
    http = FakeHttp(gets=[FakeResponse("<html>nope</html>")])
    with pytest.raises(AuthError, match="challenge"):
        SessionAuthenticator(BASE, "u", "p", http=http).authenticate()


def test_transport_error_is_chained():
    cause = requests.ConnectionError("no route to host")
    http = FakeHttp(gets=[cause])
    with pytest.raises(AuthError) as info:
        SessionAuthenticator(BASE, "u", "p", http=http).authenticate()
    assert info.value.__cause__ is cause


def test_probe():
    http = FakeHttp(gets=[FakeResponse("ok"), requests.Timeout("slow")])
    auth = SessionAuthenticator(BASE, "u", "p", http=http)
    assert auth.probe() is True
    assert auth.probe() is False


def test_fetch_posts_usage_query():
    http = FakeHttp(posts=[FakeResponse("<table>…</table>")])
    fetcher = UsageStateFetcher(BASE, "kidLis", http=http)

    assert fetcher.fetch_raw_state("abcdef0123456789") == "<table>…</table>"
    method, url, kwargs = http.calls[0]
    assert (method, url) == ("POST", f"{BASE}/data.lua")
    assert kwargs["data"] == {"xhr": "1", "sid": "abcdef0123456789", "page": "kidLis"}
    assert kwargs["headers"]["Referer"] == f"{BASE}/"


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse("", status_code=403),
        FakeResponse('{"sid":"0000000000000000","data":{}}'),
        FakeResponse("<SessionInfo><SID>0000000000000000</SID></SessionInfo>"),
    ],
)
def test_fetch_detects_expired_session(response):
    fetcher = UsageStateFetcher(BASE, http=FakeHttp(posts=[response]))
    with pytest.raises(SessionExpired):
        fetcher.fetch_raw_state("abcdef0123456789")


def test_fetch_other_failures_are_plain_fetch_errors():
    fetcher = UsageStateFetcher(
        BASE, http=FakeHttp(posts=[FakeResponse("boom", status_code=500), requests.Timeout("slow")])
    )
    with pytest.raises(FetchError) as info:
        fetcher.fetch_raw_state("abcdef0123456789")
    assert not isinstance(info.value, SessionExpired)

    with pytest.raises(FetchError) as info:
        fetcher.fetch_raw_state("abcdef0123456789")
    assert isinstance(info.value.__cause__, requests.Timeout)
