"""Error types raised by the router client and the alert pipeline."""

from typing import Optional


class MonitorError(Exception):
    def __init__(self, code: str, message: str, device: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.device = device


class AuthError(MonitorError):
    """Challenge missing, credentials rejected or the login request failed."""

    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(code, message)


class FetchError(MonitorError):
    def __init__(self, message: str, code: str = "fetch_error"):
        super().__init__(code, message)


class SessionExpired(FetchError):
    """The router no longer accepts the session id; re-authenticate once."""

    def __init__(self, message: str = "router session expired"):
        super().__init__(message, code="session_expired")


class ParseError(MonitorError):
    def __init__(self, message: str, device: Optional[str] = None):
        super().__init__("parse_error", message, device)


class SendError(MonitorError):
    def __init__(self, message: str, number: str):
        super().__init__("send_error", message)
        self.number = number
