"""Recurring programme items: expansion into dated occurrences and series lookup.

A series created by this package always carries a ``recurrenceGroupId`` shared
by every occurrence. Items saved before group ids existed are matched by
descriptive fields instead; :func:`assign_legacy_group_ids` converts them once
so the heuristic stops being needed.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import structlog
from dateutil.relativedelta import relativedelta

from .dates import DateLike, add_days, format_ymd, to_instant
from .days import ensure_day
from .errors import InvalidInput, StoreError
from .models import DAY, PROGRAM_ITEM, Day, ProgramItem, ProgramItemType, RecurrenceFrequency
from .store import Filter, Row, Store, eq, in_, is_null

LOGGER = structlog.get_logger(__name__)

_FIXED_STEPS = {
    RecurrenceFrequency.WEEKLY: 7,
    RecurrenceFrequency.BIWEEKLY: 14,
}

_CALENDAR_STEPS = {
    RecurrenceFrequency.MONTHLY: relativedelta(months=1),
    RecurrenceFrequency.YEARLY: relativedelta(years=1),
}


def new_group_id() -> str:
    return str(uuid.uuid4())


def parse_frequency(value: Union[str, RecurrenceFrequency, None]) -> RecurrenceFrequency:
    """Validate a frequency coming from a form."""
    try:
        return RecurrenceFrequency(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in RecurrenceFrequency)
        raise InvalidInput(f"Invalid recurrence frequency: {value!r} (expected one of {allowed})") from exc


def parse_item_type(value: Union[str, ProgramItemType, None]) -> ProgramItemType:
    """Validate a programme item type coming from a caller."""
    try:
        return ProgramItemType(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in ProgramItemType)
        raise InvalidInput(f"Invalid entry type: {value!r} (expected one of {allowed})") from exc


def next_occurrence(current: DateLike, frequency: Union[str, RecurrenceFrequency]) -> datetime:
    """Occurrence following ``current``.

    Monthly and yearly steps keep the day of month and clamp it to the last
    valid day of the target month (Jan 31 -> Feb 29 in a leap year).
    """
    frequency = parse_frequency(frequency)
    if frequency in _FIXED_STEPS:
        return add_days(current, _FIXED_STEPS[frequency])
    return to_instant(current) + _CALENDAR_STEPS[frequency]


def expand_occurrences(
    start: DateLike,
    frequency: Union[str, RecurrenceFrequency],
    horizon_end: DateLike,
) -> List[datetime]:
    """Every occurrence date from ``start`` up to and including ``horizon_end``.

    Each step is taken from the previous occurrence, not from ``start``, so a
    monthly series started on the 31st settles on shorter month ends once it
    has been clamped.
    """
    first = to_instant(start)
    last = to_instant(horizon_end)
    if last < first:
        raise InvalidInput("Recurrence horizon ends before the first occurrence")

    occurrences = [first]
    current = first
    while True:
        candidate = next_occurrence(current, frequency)
        if candidate > last:
            break
        occurrences.append(candidate)
        current = candidate
    return occurrences


@dataclass(frozen=True)
class SeriesPlan:
    """Occurrence dates for one recurring-creation request."""

    group_id: str
    frequency: RecurrenceFrequency
    dates: List[datetime]

    @property
    def ymds(self) -> List[str]:
        return [format_ymd(value) for value in self.dates]


def plan_series(
    start: DateLike,
    frequency: Union[str, RecurrenceFrequency],
    *,
    window_days: int = 365,
    group_id: Optional[str] = None,
) -> SeriesPlan:
    """Expand a series over ``window_days`` from its first occurrence."""
    frequency = parse_frequency(frequency)
    dates = expand_occurrences(start, frequency, add_days(start, window_days))
    return SeriesPlan(group_id=group_id or new_group_id(), frequency=frequency, dates=dates)


@dataclass
class SeriesCreation:
    """Rows written for a series plus the dates whose views changed."""

    rows: List[Row] = field(default_factory=list)
    affected_dates: List[str] = field(default_factory=list)
    skipped_dates: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.rows)


async def create_series(
    store: Store,
    values: Row,
    plan: SeriesPlan,
    *,
    language: str = "fr",
) -> SeriesCreation:
    """Insert one programme item per planned date.

    A date whose Day upsert fails is skipped and logged; the remaining
    occurrences are still written in a single batch insert.
    """
    result = SeriesCreation()
    batch: List[Row] = []
    for occurrence in plan.dates:
        ymd = format_ymd(occurrence)
        try:
            day = await ensure_day(store, occurrence, language=language)
        except StoreError as exc:
            LOGGER.warning(
                "recurrence.day_upsert_failed",
                occurrence_date=ymd,
                group_id=plan.group_id,
                error=str(exc),
            )
            result.skipped_dates.append(ymd)
            continue
        batch.append(
            {
                **values,
                "dayId": day.id,
                "isRecurring": True,
                "recurrenceFrequency": plan.frequency.value,
                "recurrenceGroupId": plan.group_id,
            }
        )
        result.affected_dates.append(ymd)

    if batch:
        result.rows = await store.insert(PROGRAM_ITEM, batch)
    LOGGER.info(
        "recurrence.series_created",
        group_id=plan.group_id,
        created=result.count,
        skipped=len(result.skipped_dates),
    )
    return result


@dataclass(frozen=True)
class SeriesMatch:
    """All occurrences of the series an item belongs to, the item included."""

    item_type: ProgramItemType
    items: List[ProgramItem]
    group_id: Optional[str] = None

    @property
    def ids(self) -> List[int]:
        return [item.id for item in self.items]

    @property
    def other_count(self) -> int:
        return max(0, len(self.items) - 1)

    def filters(self) -> List[Filter]:
        """Filters selecting exactly this series."""
        if self.group_id:
            return [eq("recurrenceGroupId", self.group_id), eq("type", self.item_type.value)]
        return [in_("id", self.ids)]


def legacy_filters(item: ProgramItem) -> List[Filter]:
    """Descriptive match for recurring items saved without a group id.

    Two unrelated series sharing type, frequency and title cannot be told
    apart this way.
    """
    filters: List[Filter] = [
        eq("type", item.type.value),
        eq("isRecurring", True),
        is_null("recurrenceGroupId"),
    ]
    if item.recurrence_frequency is None:
        filters.append(is_null("recurrenceFrequency"))
    else:
        filters.append(eq("recurrenceFrequency", item.recurrence_frequency.value))
    if item.title:
        filters.append(eq("title", item.title))
    else:
        filters.append(is_null("title"))
    return filters


async def find_occurrences(store: Store, item: ProgramItem) -> SeriesMatch:
    """Locate the sibling occurrences of ``item``; empty when it does not recur."""
    if not item.is_recurring:
        return SeriesMatch(item_type=item.type, items=[])

    if item.recurrence_group_id:
        rows = await store.select(
            PROGRAM_ITEM,
            [eq("recurrenceGroupId", item.recurrence_group_id), eq("type", item.type.value)],
            order_by="id",
        )
        return SeriesMatch(
            item_type=item.type,
            items=[ProgramItem.from_row(row) for row in rows],
            group_id=item.recurrence_group_id,
        )

    rows = await store.select(PROGRAM_ITEM, legacy_filters(item), order_by="id")
    LOGGER.debug("recurrence.legacy_match", item_id=item.id, matched=len(rows))
    return SeriesMatch(item_type=item.type, items=[ProgramItem.from_row(row) for row in rows])


async def count_other_occurrences(store: Store, item: ProgramItem) -> int:
    """How many occurrences besides ``item`` belong to its series."""
    match = await find_occurrences(store, item)
    return match.other_count


async def occurrence_dates(store: Store, items: Sequence[ProgramItem]) -> List[str]:
    """Wall-dates of the days holding ``items``."""
    day_ids = sorted({item.day_id for item in items})
    if not day_ids:
        return []
    rows = await store.select(DAY, [in_("id", day_ids)])
    return sorted(Day.from_row(row).ymd for row in rows)


async def delete_series(store: Store, match: SeriesMatch) -> List[Row]:
    """Delete every occurrence of a series in one store call."""
    return await store.delete(PROGRAM_ITEM, match.filters())


async def update_series(store: Store, match: SeriesMatch, values: Row) -> List[Row]:
    """Apply the same field changes to every occurrence of a series."""
    return await store.update(PROGRAM_ITEM, values, match.filters())


LegacyKey = Tuple[str, Optional[str], Optional[str]]


async def assign_legacy_group_ids(
    store: Store, *, id_factory: Callable[[], str] = new_group_id
) -> Dict[str, List[int]]:
    """Stamp a group id on every legacy recurring item, one per heuristic group.

    Returns the new group ids mapped to the item ids they now cover.
    """
    rows = await store.select(
        PROGRAM_ITEM,
        [eq("isRecurring", True), is_null("recurrenceGroupId")],
        order_by="id",
    )
    groups: Dict[LegacyKey, List[int]] = {}
    for row in rows:
        item = ProgramItem.from_row(row)
        frequency = item.recurrence_frequency.value if item.recurrence_frequency else None
        groups.setdefault((item.type.value, frequency, item.title or None), []).append(item.id)

    assigned: Dict[str, List[int]] = {}
    for key, ids in groups.items():
        group_id = id_factory()
        await store.update(PROGRAM_ITEM, {"recurrenceGroupId": group_id}, [in_("id", ids)])
        assigned[group_id] = ids
        LOGGER.info("recurrence.legacy_group_assigned", group_id=group_id, item_type=key[0], items=len(ids))
    return assigned
