import os
import logging
from datetime import datetime
from typing import Optional

import pytz
from dotenv import load_dotenv

load_dotenv()


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory").lower()
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "eyecare")

# Single hardcoded user until authentication exists
DEFAULT_USER_ID = int(os.getenv("DEFAULT_USER_ID", 1))
DEFAULT_USERNAME = os.getenv("DEFAULT_USERNAME", "testuser")

APP_TIMEZONE = os.getenv("APP_TIMEZONE")

INVENTORY_FLOOR_AT_ZERO = env_flag("INVENTORY_FLOOR_AT_ZERO", True)
INVENTORY_CAP_AT_TOTAL = env_flag("INVENTORY_CAP_AT_TOTAL", False)

REMINDERS_ENABLED = env_flag("REMINDERS_ENABLED", False)
REMINDER_LEAD_MINUTES = int(os.getenv("REMINDER_LEAD_MINUTES", 5))
REMINDER_INTERVAL_SECONDS = int(os.getenv("REMINDER_INTERVAL_SECONDS", 60))
APPOINTMENT_REMINDER_HOURS = int(os.getenv("APPOINTMENT_REMINDER_HOURS", 24))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging():
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, LOG_LEVEL, logging.INFO)
    )


def app_timezone() -> Optional[pytz.BaseTzInfo]:
    if not APP_TIMEZONE:
        return None
    return pytz.timezone(APP_TIMEZONE)


def local_now() -> datetime:
    """Current wall-clock time as a naive datetime in the app timezone."""
    tz = app_timezone()
    if tz is None:
        return datetime.now()
    return datetime.now(tz).replace(tzinfo=None)


def to_local(ts: datetime) -> datetime:
    """Convert an aware timestamp to naive app-local time.

    Naive timestamps are assumed to already be local.
    """
    if ts.tzinfo is None:
        return ts
    tz = app_timezone()
    if tz is None:
        return ts.astimezone().replace(tzinfo=None)
    return ts.astimezone(tz).replace(tzinfo=None)
