"""Time sources used to decide what "today" means for an account."""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Anything that can report the current moment."""

    def now(self) -> datetime:
        ...

    def today(self) -> date:
        ...


class SystemClock:
    """Wall clock pinned to a single time zone.

    Every day boundary inside one registry comes from the same instance, so the
    daily generator and the custom task quota never disagree about the date.
    """

    def __init__(self, timezone: str | tzinfo | None = None) -> None:
        if isinstance(timezone, str):
            timezone = ZoneInfo(timezone)
        self.timezone: Optional[tzinfo] = timezone

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def today(self) -> date:
        return self.now().date()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | date | None = None) -> None:
        if start is None:
            start = datetime(2024, 1, 1, 9, 0)
        elif not isinstance(start, datetime):
            start = datetime.combine(start, datetime.min.time()).replace(hour=9)
        self._moment = start

    def now(self) -> datetime:
        return self._moment

    def today(self) -> date:
        return self._moment.date()

    def advance(self, **delta: float) -> datetime:
        self._moment = self._moment + timedelta(**delta)
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = moment


__all__ = ["Clock", "ManualClock", "SystemClock"]
