from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


WEEK_WINDOW_DAYS = 7


@dataclass(frozen=True)
class DayWindow:
    """Half-open window of whole local days: ``start`` inclusive, ``end`` exclusive."""

    start: date
    end: date

    def contains(self, value: date | datetime | None) -> bool:
        if value is None:
            return False
        if isinstance(value, datetime):
            value = value.date()
        return self.start <= value < self.end

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.start, datetime.min.time())

    @property
    def end_at(self) -> datetime:
        return datetime.combine(self.end, datetime.min.time())


def window_from(today: date, days: int) -> DayWindow:
    if days < 1:
        raise ValueError("window must span at least one day")
    return DayWindow(start=today, end=today + timedelta(days=days))


def today_window(today: date) -> DayWindow:
    return window_from(today, 1)


def week_window(today: date) -> DayWindow:
    return window_from(today, WEEK_WINDOW_DAYS)


def local_now(tz_name: str) -> datetime:
    """Current wall-clock time in ``tz_name`` as a naive datetime."""
    try:
        tz = ZoneInfo(tz_name)
    except ZoneInfoNotFoundError:
        return datetime.now()
    return datetime.now(tz).replace(tzinfo=None)
