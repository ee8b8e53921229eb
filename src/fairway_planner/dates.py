"""Calendar helpers for wall-dates in the operating timezone.

A wall-date travels through the board as the UTC-midnight ``datetime`` of
that date (an "instant"), or as its canonical ``YYYY-MM-DD`` string. Day
arithmetic only ever touches UTC fields, so DST transitions in the operating
timezone never shift a date.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Union

import structlog
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidDateFormat, InvalidInput

LOGGER = structlog.get_logger(__name__)

UTC = timezone.utc
DEFAULT_TIMEZONE = "Europe/Brussels"
DEFAULT_HORIZON_DAYS = 365

WEEKDAY_NAMES = {
    "en": {
        0: "Monday",
        1: "Tuesday",
        2: "Wednesday",
        3: "Thursday",
        4: "Friday",
        5: "Saturday",
        6: "Sunday",
    },
    "fr": {
        0: "lundi",
        1: "mardi",
        2: "mercredi",
        3: "jeudi",
        4: "vendredi",
        5: "samedi",
        6: "dimanche",
    },
}

_YMD_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class MonthDateRange:
    """First and last wall-date of a calendar month, plus every date between."""

    start: datetime
    end: datetime
    dates: List[datetime]

    @property
    def start_ymd(self) -> str:
        return format_ymd(self.start)

    @property
    def end_ymd(self) -> str:
        return format_ymd(self.end)


def get_zone(timezone_name: str) -> ZoneInfo:
    """Return a ZoneInfo instance, defaulting to UTC on failure."""
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        LOGGER.warning("dates.unknown_timezone", timezone=timezone_name)
        return ZoneInfo("UTC")


def now_in_timezone(timezone_name: str, now: Optional[datetime] = None) -> datetime:
    """Current datetime in the configured timezone."""
    zone = get_zone(timezone_name)
    if now is None:
        return datetime.now(tz=zone)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(zone)


def from_ymd(year: int, month: int, day: int) -> datetime:
    """UTC-midnight instant for the given calendar fields."""
    return datetime(year, month, day, tzinfo=UTC)


def to_instant(value: DateLike) -> datetime:
    """Normalise a ``date`` or ``datetime`` to the UTC midnight of its wall-date."""
    wall = wall_date(value)
    return from_ymd(wall.year, wall.month, wall.day)


def wall_date(value: DateLike) -> date:
    """Calendar date carried by an instant, read from its UTC fields."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date()
    return value


def parse_ymd(value: str) -> datetime:
    """Parse ``YYYY-MM-DD`` literally into the UTC midnight of that date."""
    if not isinstance(value, str):
        raise InvalidDateFormat(value)
    match = _YMD_PATTERN.match(value.strip())
    if not match:
        raise InvalidDateFormat(value)
    year, month, day = (int(part) for part in match.groups())
    try:
        return from_ymd(year, month, day)
    except ValueError as exc:
        raise InvalidDateFormat(value) from exc


def format_ymd(value: DateLike) -> str:
    """Inverse of :func:`parse_ymd`."""
    return wall_date(value).isoformat()


def parse_month(value: str) -> tuple[int, int]:
    """Parse ``YYYY-MM`` into ``(year, month)``."""
    match = _MONTH_PATTERN.match((value or "").strip())
    if not match:
        raise InvalidInput(f"Invalid month: {value!r} (expected YYYY-MM)")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidInput(f"Invalid month: {value!r} (expected YYYY-MM)")
    return year, month


def add_days(value: DateLike, n: int) -> datetime:
    """Calendar-day arithmetic on UTC fields."""
    return to_instant(value) + timedelta(days=n)


def date_range(start: DateLike, end: DateLike) -> List[datetime]:
    """Every wall-date from ``start`` through ``end``, inclusive."""
    current = to_instant(start)
    last = to_instant(end)
    days: List[datetime] = []
    while current <= last:
        days.append(current)
        current = current + timedelta(days=1)
    return days


def get_today_in_operating_timezone(
    timezone_name: str = DEFAULT_TIMEZONE, *, now: Optional[datetime] = None
) -> datetime:
    """Today's wall-date in the operating timezone, as a UTC-midnight instant."""
    local_now = now_in_timezone(timezone_name, now)
    return from_ymd(local_now.year, local_now.month, local_now.day)


def is_past_date(
    value: DateLike,
    *,
    timezone_name: str = DEFAULT_TIMEZONE,
    today: Optional[datetime] = None,
) -> bool:
    """True when the wall-date lies strictly before today."""
    today = today or get_today_in_operating_timezone(timezone_name)
    return to_instant(value) < to_instant(today)


def is_date_within_horizon(
    value: DateLike,
    *,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    timezone_name: str = DEFAULT_TIMEZONE,
    today: Optional[datetime] = None,
) -> bool:
    """True when the wall-date is no more than ``horizon_days`` after today."""
    today = today or get_today_in_operating_timezone(timezone_name)
    return to_instant(value) <= add_days(today, horizon_days)


def weekday_name(value: DateLike, language: str = "fr") -> str:
    """Display name of the weekday of a wall-date."""
    names = WEEKDAY_NAMES.get(language, WEEKDAY_NAMES["en"])
    return names[wall_date(value).weekday()]


def month_date_range(year: int, month: int) -> MonthDateRange:
    """Date range covering one calendar month."""
    first = from_ymd(year, month, 1)
    if month == 12:
        first_of_next = from_ymd(year + 1, 1, 1)
    else:
        first_of_next = from_ymd(year, month + 1, 1)
    last = add_days(first_of_next, -1)
    return MonthDateRange(start=first, end=last, dates=date_range(first, last))
