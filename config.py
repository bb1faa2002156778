import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from app.types.alert_contract import MonitorConfig

load_dotenv()


class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- FRITZ!Box router ---
    FRITZ_USER = os.environ.get("FRITZ_USER", "")
    FRITZ_PASSWD = os.environ.get("FRITZ_PASSWD", "")
    FRITZ_TIMEOUT = float(os.environ.get("FRITZ_TIMEOUT", "10"))

    # --- Telnyx (SMS) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")

    # --- Monitor config + schedule ---
    CONFIG_PATH = os.environ.get("CONFIG_PATH", "./config.json")
    CRON_SCHEDULE = os.environ.get("CRON_SCHEDULE", "*/5 * * * *")
    RETENTION_DAYS = int(os.environ.get("RETENTION_DAYS", "30"))

    # --- Timezone used to decide what "today" is ---
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")

settings = Settings()


def load_monitor_config(path: str | os.PathLike | None = None) -> MonitorConfig:
    """Read and validate the JSON monitor config (device, router, phone numbers)."""
    cfg_path = Path(path or settings.CONFIG_PATH).expanduser()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {cfg_path}")
    return MonitorConfig.model_validate_json(cfg_path.read_text(encoding="utf-8"))


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = log_file or settings.LOG_FILE
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )
