"""
Wall-clock helpers in the portal's timezone.

All attendance dates are rendered as `DD Mon YYYY` and times as `HH:MM AM`
in one configured timezone (env PORTAL_TIMEZONE, default Asia/Dhaka), so the
per-day attendance key is the same for every request made on that local day.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, Optional
import os
from zoneinfo import ZoneInfo

DATE_FORMAT = "%d %b %Y"
TIME_FORMAT = "%I:%M %p"
DEFAULT_TIMEZONE = "Asia/Dhaka"

# datetime.weekday(): Monday == 0
OFF_DAYS = frozenset({4, 5})  # Friday, Saturday


class PortalClock:
    """Injectable clock; tests pass `now=` returning a fixed aware datetime."""

    def __init__(self, tz_name: str | None = None, now: Optional[Callable[[], datetime]] = None):
        self.tz = ZoneInfo(tz_name or os.getenv("PORTAL_TIMEZONE") or DEFAULT_TIMEZONE)
        self._now = now or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._now().astimezone(self.tz)

    def today(self) -> str:
        return format_date(self.now())

    def time_of_day(self) -> str:
        return format_time(self.now())

    def epoch_ms(self) -> int:
        return int(self._now().timestamp() * 1000)

    def is_off_day(self) -> bool:
        return self.now().weekday() in OFF_DAYS


def format_date(value: datetime | date) -> str:
    return value.strftime(DATE_FORMAT)


def format_time(value: datetime) -> str:
    return value.strftime(TIME_FORMAT)


def parse_date(value: str | None) -> Optional[date]:
    """Parse a `DD Mon YYYY` date; None when unparseable."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def is_off_date(value: str | None) -> bool:
    parsed = parse_date(value)
    return parsed is not None and parsed.weekday() in OFF_DAYS


def _minutes_of_day(value: str) -> int:
    parsed = datetime.strptime(value.strip().upper(), TIME_FORMAT)
    return parsed.hour * 60 + parsed.minute


def calculate_duration(check_in: str, check_out: str) -> str:
    """Return `"{h}h {m}m"` between two same-day times.

    A check-out earlier than the check-in yields `0h 0m`.
    """
    diff = max(0, _minutes_of_day(check_out) - _minutes_of_day(check_in))
    return f"{diff // 60}h {diff % 60}m"


def parse_iso_date(value: str | None) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


__all__ = [
    "PortalClock",
    "DATE_FORMAT",
    "TIME_FORMAT",
    "OFF_DAYS",
    "format_date",
    "format_time",
    "parse_date",
    "parse_iso_date",
    "is_off_date",
    "calculate_duration",
]
