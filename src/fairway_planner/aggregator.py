"""Per-date view model for the calendar and its detail panel."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

import structlog

from .dates import DateLike, format_ymd, get_today_in_operating_timezone, month_date_range, to_instant, wall_date
from .models import (
    BREAKFAST_CONFIGURATION,
    DAY,
    HOTEL_BOOKING,
    POINT_OF_CONTACT,
    PROGRAM_ITEM,
    RESERVATION,
    VENUE_TYPE,
    BreakfastConfiguration,
    Day,
    DayData,
    HotelBooking,
    PointOfContact,
    ProgramItem,
    ProgramItemType,
    Reservation,
    StoreRow,
    VenueType,
)
from .store import Row, Store, gt, gte, in_, lte

LOGGER = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=StoreRow)
DayDataMap = Dict[str, DayData]


def _coerce(model: Type[ModelT], rows: Iterable[Union[ModelT, Row]]) -> List[ModelT]:
    return [row if isinstance(row, model) else model.from_row(row) for row in rows]


def build_day_data(
    *,
    days: Iterable[Union[Day, Row]],
    program_items: Iterable[Union[ProgramItem, Row]] = (),
    reservations: Iterable[Union[Reservation, Row]] = (),
    hotel_bookings: Iterable[Union[HotelBooking, Row]] = (),
    breakfast_configs: Iterable[Union[BreakfastConfiguration, Row]] = (),
    window_start: DateLike,
    window_end: DateLike,
) -> DayDataMap:
    """Bucket raw rows by wall-date for every date in the window.

    Day rows open a bucket each. A stay also opens buckets for the nights it
    covers even when no Day row exists yet, and so does a breakfast for its
    morning, so both always reach the calendar.
    """
    first, last = wall_date(window_start), wall_date(window_end)
    buckets: DayDataMap = {}
    day_keys: Dict[int, str] = {}

    def bucket(key: str) -> DayData:
        if key not in buckets:
            buckets[key] = DayData(ymd=key)
        return buckets[key]

    for day in sorted(_coerce(Day, days), key=lambda d: d.date_iso):
        if not first <= wall_date(day.date_iso) <= last:
            continue
        day_keys[day.id] = day.ymd
        bucket(day.ymd)

    for item in _coerce(ProgramItem, program_items):
        key = day_keys.get(item.day_id)
        if key is None:
            continue
        if item.type is ProgramItemType.GOLF:
            bucket(key).golf_items.append(item)
        else:
            bucket(key).event_items.append(item)

    for reservation in _coerce(Reservation, reservations):
        key = day_keys.get(reservation.day_id)
        if key is not None:
            bucket(key).reservations.append(reservation)

    stays = sorted(_coerce(HotelBooking, hotel_bookings), key=lambda b: (b.check_in_date, b.id))
    for booking in stays:
        night = max(booking.check_in_date, first)
        last_night = min(booking.check_out_date - timedelta(days=1), last)
        while night <= last_night:
            bucket(night.isoformat()).hotel_bookings.append(booking)
            night += timedelta(days=1)

    for config in _coerce(BreakfastConfiguration, breakfast_configs):
        if first <= config.breakfast_date <= last:
            bucket(config.breakfast_date.isoformat()).breakfast_configs.append(config)

    return dict(sorted(buckets.items()))


def date_has_activity(day_data: Mapping[str, DayData], value: Union[str, DateLike]) -> bool:
    """Presence indicator for the calendar: anything at all scheduled that day."""
    key = value if isinstance(value, str) else format_ymd(value)
    data = day_data.get(key)
    return bool(data and data.has_activity)


async def _attach_references(store: Store, items: List[ProgramItem]) -> None:
    venue_ids = sorted({item.venue_type_id for item in items if item.venue_type_id is not None})
    poc_ids = sorted({item.poc_id for item in items if item.poc_id is not None})
    venues = {}
    contacts = {}
    if venue_ids:
        venues = {row["id"]: VenueType.from_row(row) for row in await store.select(VENUE_TYPE, [in_("id", venue_ids)])}
    if poc_ids:
        contacts = {
            row["id"]: PointOfContact.from_row(row)
            for row in await store.select(POINT_OF_CONTACT, [in_("id", poc_ids)])
        }
    for item in items:
        item.venue = venues.get(item.venue_type_id)
        item.poc = contacts.get(item.poc_id)


async def fetch_day_data(store: Store, window_start: DateLike, window_end: DateLike) -> DayDataMap:
    """Read every row kind for the window and build its :class:`DayData` map."""
    start, end = to_instant(window_start), to_instant(window_end)
    start_ymd, end_ymd = format_ymd(start), format_ymd(end)

    days = _coerce(
        Day,
        await store.select(
            DAY,
            [gte("dateISO", start.isoformat()), lte("dateISO", end.isoformat())],
            order_by="dateISO",
        ),
    )
    day_ids = [day.id for day in days]
    items: List[ProgramItem] = []
    reservations: List[Reservation] = []
    if day_ids:
        items = _coerce(
            ProgramItem,
            await store.select(PROGRAM_ITEM, [in_("dayId", day_ids)], order_by="startTime"),
        )
        reservations = _coerce(
            Reservation,
            await store.select(RESERVATION, [in_("dayId", day_ids)], order_by="startTime"),
        )
        await _attach_references(store, items)

    bookings = await store.select(
        HOTEL_BOOKING,
        [lte("checkInDate", end_ymd), gt("checkOutDate", start_ymd)],
        order_by="checkInDate",
    )
    breakfasts = await store.select(
        BREAKFAST_CONFIGURATION,
        [gte("breakfastDate", start_ymd), lte("breakfastDate", end_ymd)],
        order_by="startTime",
    )

    day_data = build_day_data(
        days=days,
        program_items=items,
        reservations=reservations,
        hotel_bookings=bookings,
        breakfast_configs=breakfasts,
        window_start=start,
        window_end=end,
    )
    LOGGER.debug("aggregator.built", start=start_ymd, end=end_ymd, dates=len(day_data))
    return day_data


Loader = Callable[[datetime, datetime], Awaitable[DayDataMap]]


class MonthCalendar:
    """The visible month's :class:`DayData` map, rebuilt rather than patched.

    The map is rebuilt on the next read after the visible month changes or
    after any mutation is reported.
    """

    def __init__(
        self,
        loader: Loader,
        *,
        timezone_name: str = "Europe/Brussels",
        include_past: bool = False,
        today: Optional[Callable[[], datetime]] = None,
    ):
        self._loader = loader
        self._timezone_name = timezone_name
        self._include_past = include_past
        self._today = today or (lambda: get_today_in_operating_timezone(self._timezone_name))
        today_value = self._today()
        self._month: Tuple[int, int] = (today_value.year, today_value.month)
        self._data: Optional[DayDataMap] = None
        self.builds = 0

    @property
    def month(self) -> Tuple[int, int]:
        return self._month

    @property
    def is_stale(self) -> bool:
        return self._data is None

    def window(self) -> Tuple[datetime, datetime]:
        """First and last date fetched for the visible month."""
        month_range = month_date_range(*self._month)
        start = month_range.start
        if not self._include_past:
            start = max(start, to_instant(self._today()))
        return start, month_range.end

    def show(self, year: int, month: int) -> None:
        if (year, month) != self._month:
            self._month = (year, month)
            self._data = None

    def report_mutation(self, affected_dates: Iterable[str] = ()) -> None:
        """A row changed somewhere; the next read refetches the whole month."""
        LOGGER.debug("calendar.invalidated", month=self._month, dates=list(affected_dates))
        self._data = None

    async def day_data(self) -> DayDataMap:
        if self._data is None:
            start, end = self.window()
            if start > end:
                self._data = {}
            else:
                self._data = await self._loader(start, end)
            self.builds += 1
        return self._data

    async def has_activity(self, value: Union[str, date, datetime]) -> bool:
        return date_has_activity(await self.day_data(), value)

    async def selected(self, value: Union[str, date, datetime]) -> Optional[DayData]:
        key = value if isinstance(value, str) else format_ymd(value)
        return (await self.day_data()).get(key)
