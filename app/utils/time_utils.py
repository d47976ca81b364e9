from datetime import date, datetime, timedelta
from typing import Optional, Protocol, Tuple, Union

import pytz
from pytz import UTC

from config import settings


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class RealClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class FakeClock:
    """Manually advanced clock for tests and scripted replays."""

    def __init__(self, start: Optional[datetime] = None):
        base = start or datetime(2026, 1, 1, 9, 0, 0, tzinfo=UTC)
        self._current = as_utc(base)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self._current += timedelta(seconds=seconds, **kwargs)
        return self._current


def get_clock() -> Clock:
    return RealClock()


def as_utc(value: datetime) -> datetime:
    # Mongo hands datetimes back naive; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """
    Whole seconds between two instants, truncated toward zero.
    Never negative, so a clock stepping backwards cannot shrink a total.
    """
    delta = (as_utc(end) - as_utc(start)).total_seconds()
    return max(0, int(delta))


def current_elapsed_total(session: dict, now: datetime) -> int:
    total = int(session.get("total_accumulated_duration", 0))
    last_start = session.get("last_interval_start_time")
    if session.get("status") == "running" and last_start is not None:
        total += elapsed_seconds(last_start, now)
    return total


def get_timezone(name: Optional[str] = None):
    try:
        return pytz.timezone(name or settings.SUMMARY_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown time zone: {name}")


def local_today(now: datetime, tz_name: Optional[str] = None) -> date:
    return as_utc(now).astimezone(get_timezone(tz_name)).date()


def day_start(value: Union[date, datetime]) -> datetime:
    """Calendar day as stored in Mongo: naive midnight, read as UTC."""
    if isinstance(value, datetime):
        value = value.date()
    return datetime(value.year, value.month, value.day)


def month_start(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime(value.year, value.month, 1)


def month_key(value: Union[date, datetime]) -> Tuple[int, int]:
    return value.year, value.month


def format_month(value: Union[date, datetime, Tuple[int, int]]) -> str:
    year, month = value if isinstance(value, tuple) else month_key(value)
    return f"{year:04d}-{month:02d}"


def current_month_cutoff(current_date: Optional[Union[date, datetime]] = None,
                         tz_name: Optional[str] = None) -> datetime:
    """
    First day of the current calendar month in the reference time zone.
    Entries dated strictly before it belong to closed months.
    """
    if current_date is None:
        current_date = datetime.now(UTC)
    if isinstance(current_date, datetime):
        current_date = local_today(current_date, tz_name)
    return month_start(current_date)
