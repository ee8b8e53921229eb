"""On-demand creation of Day rows."""

from __future__ import annotations

from typing import List

import structlog

from .dates import DateLike, add_days, date_range, to_instant, weekday_name
from .errors import InvalidInput
from .models import DAY, Day
from .store import Store

LOGGER = structlog.get_logger(__name__)


def day_row(value: DateLike, language: str = "fr") -> dict:
    instant = to_instant(value)
    return {"dateISO": instant.isoformat(), "weekday": weekday_name(instant, language)}


async def ensure_day(store: Store, value: DateLike, *, language: str = "fr") -> Day:
    """Upsert the Day row for a wall-date and return it."""
    row = await store.upsert(DAY, day_row(value, language), on_conflict="dateISO")
    return Day.from_row(row)


async def ensure_days_range(
    store: Store, start: DateLike, end: DateLike, *, language: str = "fr"
) -> List[Day]:
    """Upsert every Day row from ``start`` through ``end``, inclusive."""
    days: List[Day] = []
    for value in date_range(start, end):
        days.append(await ensure_day(store, value, language=language))
    LOGGER.debug("days.ensured", start=days[0].ymd if days else None, count=len(days))
    return days


async def ensure_default_days(
    store: Store, today: DateLike, *, days: int = 14, language: str = "fr"
) -> List[Day]:
    """Keep the rolling window of Day rows starting at ``today`` in place."""
    if days < 1:
        raise InvalidInput("The day window must cover at least one day")
    return await ensure_days_range(store, today, add_days(today, days - 1), language=language)
