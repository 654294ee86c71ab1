"""Configuration constants for the MailClub web service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return int(value)


SQLITE_FILE_NAME = os.environ.get("MAILCLUB_SQLITE", "mailclub.db")
TIMEZONE = os.environ.get("MAILCLUB_TIMEZONE") or None
LOG_PATH = os.environ.get("MAILCLUB_LOG_PATH") or None
SMTP_HOST = os.environ.get("SMTP_HOST") or None
SMTP_PORT = _env_int("SMTP_PORT", 587)
SMTP_USERNAME = os.environ.get("SMTP_USERNAME") or None
SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD") or None
SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
EMAIL_FROM = os.environ.get("EMAIL_FROM", "Posty Magic Mail Club <noreply@magicmailclub.org>")
EMAIL_RATE_LIMIT_MAX = _env_int("EMAIL_RATE_LIMIT_MAX", 5)
EMAIL_RATE_LIMIT_WINDOW = timedelta(seconds=_env_int("EMAIL_RATE_LIMIT_WINDOW_SECONDS", 3600))


@dataclass(slots=True)
class Settings:
    """Runtime settings for one application instance."""

    sqlite_file: Optional[str] = SQLITE_FILE_NAME
    timezone: Optional[str] = TIMEZONE
    log_path: Optional[Path] = Path(LOG_PATH) if LOG_PATH else None
    smtp_host: Optional[str] = SMTP_HOST
    smtp_port: int = SMTP_PORT
    smtp_username: Optional[str] = SMTP_USERNAME
    smtp_password: Optional[str] = SMTP_PASSWORD
    smtp_use_tls: bool = SMTP_USE_TLS
    email_from: str = EMAIL_FROM
    email_rate_limit_max: int = EMAIL_RATE_LIMIT_MAX
    email_rate_limit_window: timedelta = EMAIL_RATE_LIMIT_WINDOW


__all__ = [
    "EMAIL_FROM",
    "EMAIL_RATE_LIMIT_MAX",
    "EMAIL_RATE_LIMIT_WINDOW",
    "LOG_PATH",
    "SMTP_HOST",
    "SMTP_PASSWORD",
    "SMTP_PORT",
    "SMTP_USERNAME",
    "SMTP_USE_TLS",
    "SQLITE_FILE_NAME",
    "Settings",
    "TIMEZONE",
]
