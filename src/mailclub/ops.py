"""Operational utilities for MailClub."""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional


class HealthMonitor:
    """Track whether the account store is accepting writes."""

    def __init__(self) -> None:
        self.database_online = True
        self.started_at = datetime.utcnow()
        self.last_error: Optional[str] = None
        self.error_count = 0

    def record_error(self, message: str) -> None:
        self.database_online = False
        self.last_error = message
        self.error_count += 1

    def record_success(self) -> None:
        self.database_online = True

    def status(self) -> dict:
        return {
            "status": "ok" if self.database_online else "degraded",
            "database": "ok" if self.database_online else "down",
            "uptime_seconds": int((datetime.utcnow() - self.started_at).total_seconds()),
            "errors": self.error_count,
            "last_error": self.last_error,
        }


class StructuredLogger:
    """Write JSON lines log entries for admin inspection."""

    def __init__(self, *, path: Path | None = None, keep: int = 1000) -> None:
        self.path = path
        self._keep = keep
        self._entries: list[dict] = []
        self._lock = threading.Lock()

    def log(self, event_type: str, **fields: object) -> dict:
        entry = {"timestamp": datetime.utcnow().isoformat(), "event": event_type, **fields}
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self._keep:
                del self._entries[: len(self._entries) - self._keep]
            if self.path:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        return tuple(self._entries[-limit:])

    def events(self, event_type: str) -> tuple[dict, ...]:
        return tuple(entry for entry in self._entries if entry["event"] == event_type)


__all__ = ["HealthMonitor", "StructuredLogger"]
