import logging

import telnyx

from config import settings

_LOGGER = logging.getLogger(__name__)

FROM_NUM = settings.TELNYX_FROM_NUMBER
TELNYX_API_KEY = settings.TELNYX_API_KEY
if TELNYX_API_KEY:
    telnyx.api_key = TELNYX_API_KEY


def is_configured() -> bool:
    return bool(TELNYX_API_KEY and FROM_NUM)


def send_sms(to: str, body: str) -> bool:
    """Send one SMS. Returns False instead of raising when Telnyx refuses it."""
    if not is_configured():
        _LOGGER.info("[SMS] DEV mode: would send to %s: %s", to, body)
        return True
    try:
        msg = telnyx.Message.create(from_=FROM_NUM, to=to, text=body)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Failed to send SMS to %s: %s", to, exc)
        return False
    _LOGGER.info("SMS sent to %s (id=%s)", to, getattr(msg, "id", None))
    return True
