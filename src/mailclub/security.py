"""Passcode hashing and request throttling."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict

from passlib.context import CryptContext

from .clock import Clock, SystemClock
from .exceptions import RateLimited

DEFAULT_PASSCODE = "1234"
PASSCODE_PATTERN = re.compile(r"^\d{4}$")

passcode_context = CryptContext(schemes=["pbkdf2_sha256"])


def validate_passcode(passcode: str) -> str:
    """Return ``passcode`` if it is exactly four digits."""

    if not isinstance(passcode, str) or not PASSCODE_PATTERN.match(passcode):
        raise ValueError("Passcode must be exactly 4 digits.")
    return passcode


def hash_passcode(passcode: str) -> str:
    """Return a salted one-way hash of a valid passcode."""

    return passcode_context.hash(validate_passcode(passcode))


def verify_passcode(passcode: str, stored_hash: str) -> bool:
    if not isinstance(passcode, str) or not PASSCODE_PATTERN.match(passcode):
        return False
    if not passcode_context.identify(stored_hash):
        return False
    return passcode_context.verify(passcode, stored_hash)


@dataclass(slots=True)
class RateWindow:
    count: int
    reset_at: datetime


class EmailRateLimiter:
    """Fixed-window request counter keyed by lower-cased email address.

    The first request opens a window of ``window`` length; up to
    ``max_requests`` calls are accepted inside it. A request arriving after the
    window has ended opens a new one.
    """

    def __init__(
        self,
        *,
        max_requests: int = 5,
        window: timedelta = timedelta(hours=1),
        clock: Clock | None = None,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive.")
        self.max_requests = max_requests
        self.window = window
        self._clock = clock or SystemClock()
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().lower()

    def hit(self, email: str) -> RateWindow:
        """Count one request for ``email`` or raise :class:`RateLimited`."""

        key = self._key(email)
        now = self._clock.now()
        with self._lock:
            record = self._windows.get(key)
            if record is None or now > record.reset_at:
                record = RateWindow(count=1, reset_at=now + self.window)
                self._windows[key] = record
                return record
            if record.count >= self.max_requests:
                retry_after = max(0.0, (record.reset_at - now).total_seconds())
                raise RateLimited(
                    "Too many requests. Please try again later.", retry_after=retry_after
                )
            record.count += 1
            return record

    def remaining(self, email: str) -> int:
        record = self._windows.get(self._key(email))
        if record is None or self._clock.now() > record.reset_at:
            return self.max_requests
        return max(0, self.max_requests - record.count)

    def reset(self, email: str | None = None) -> None:
        with self._lock:
            if email is None:
                self._windows.clear()
            else:
                self._windows.pop(self._key(email), None)


__all__ = [
    "DEFAULT_PASSCODE",
    "EmailRateLimiter",
    "RateWindow",
    "hash_passcode",
    "passcode_context",
    "validate_passcode",
    "verify_passcode",
]
