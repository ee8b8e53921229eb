"""Operations exposed to the page layer.

Each mutation takes the submitted form as a key/value mapping and returns an
:class:`~fairway_planner.models.ActionResult`; failures never escape as
exceptions. Results carry ``affected_dates`` so callers can refresh exactly
the day views a change touched.
"""

from __future__ import annotations

import functools
import inspect
import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Set, Tuple, Type, TypeVar, Union

import structlog

from .aggregator import DayDataMap, MonthCalendar, fetch_day_data
from .config import Settings
from .dates import (
    DateLike,
    add_days,
    format_ymd,
    get_today_in_operating_timezone,
    is_date_within_horizon,
    is_past_date,
    month_date_range,
    parse_ymd,
    to_instant,
)
from .days import ensure_day, ensure_days_range, ensure_default_days
from .errors import FairwayError, InvalidInput, NotFound, PastOrOutOfHorizonDate, StoreError
from .forms import Form, get_int, get_str, is_checked, is_true, optional_id, require_date, require_id
from .models import (
    BREAKFAST_CONFIGURATION,
    DAY,
    HOTEL_BOOKING,
    POINT_OF_CONTACT,
    PROGRAM_ITEM,
    RESERVATION,
    VENUE_TYPE,
    ActionResult,
    BreakfastConfiguration,
    Day,
    HotelBooking,
    PointOfContact,
    ProgramItem,
    ProgramItemType,
    Reservation,
    StoreRow,
    VenueType,
)
from .recurrence import (
    create_series,
    delete_series,
    find_occurrences,
    occurrence_dates,
    parse_item_type,
    plan_series,
    update_series,
)
from .store import Filter, Row, Store, eq, escape_like, gt, ilike, in_, lte, neq
from .stays import (
    StayPlan,
    first_table_time,
    in_breakfast_window,
    parse_table_breakdown,
    plan_stay_records,
    reservation_days,
)

LOGGER = structlog.get_logger(__name__)

NOT_AUTHENTICATED = "Not authenticated"

ModelT = TypeVar("ModelT", bound=StoreRow)
EditorCheck = Callable[[], Union[bool, Awaitable[bool]]]
MutationListener = Callable[[List[str]], None]


def editor_action(method: Callable[..., Awaitable[ActionResult]]) -> Callable[..., Awaitable[ActionResult]]:
    """Gate a mutation on the editor predicate and turn errors into results."""

    @functools.wraps(method)
    async def wrapper(self: "Board", *args: Any, **kwargs: Any) -> ActionResult:
        if not await self.is_editor():
            LOGGER.info("board.not_authenticated", action=method.__name__)
            return ActionResult.failure(NOT_AUTHENTICATED)
        try:
            result = await method(self, *args, **kwargs)
        except FairwayError as exc:
            LOGGER.warning(
                "board.action_failed",
                action=method.__name__,
                error_type=exc.__class__.__name__,
                error=str(exc),
            )
            return ActionResult.failure(str(exc))
        if result.ok:
            self._notify(result.affected_dates)
        return result

    return wrapper


def _sorted_dates(*groups: Iterable[str]) -> List[str]:
    dates: Set[str] = set()
    for group in groups:
        dates.update(value for value in group if value)
    return sorted(dates)


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def venue_code(name: str) -> str:
    """Default venue type code: lower case with whitespace runs turned into hyphens."""
    return re.sub(r"\s+", "-", name.strip().lower())


class Board:
    """The scheduling board over one relational store."""

    def __init__(
        self,
        store: Store,
        settings: Optional[Settings] = None,
        *,
        editor_check: Optional[EditorCheck] = None,
        today: Optional[Callable[[], DateLike]] = None,
    ):
        self.store = store
        self.settings = settings or Settings()
        self._editor_check = editor_check
        self._today = today
        self._listeners: List[MutationListener] = []

    async def is_editor(self) -> bool:
        if self._editor_check is None:
            return True
        verdict = self._editor_check()
        if inspect.isawaitable(verdict):
            verdict = await verdict
        return bool(verdict)

    def today(self) -> datetime:
        if self._today is not None:
            return to_instant(self._today())
        return get_today_in_operating_timezone(self.settings.timezone)

    def subscribe(self, listener: MutationListener) -> None:
        """Call ``listener`` with the affected dates after every successful mutation."""
        self._listeners.append(listener)

    def _notify(self, affected_dates: List[str]) -> None:
        for listener in self._listeners:
            listener(list(affected_dates))

    @property
    def _language(self) -> str:
        return self.settings.weekday_language

    def _check_schedulable(self, value: datetime, *, label: str = "Date") -> None:
        today = self.today()
        if is_past_date(value, today=today):
            if label == "Date":
                raise PastOrOutOfHorizonDate("Cannot create entries for past dates")
            raise PastOrOutOfHorizonDate(f"{label} cannot be in the past")
        if not is_date_within_horizon(value, horizon_days=self.settings.horizon_days, today=today):
            raise PastOrOutOfHorizonDate(
                f"{label} must be within {self.settings.horizon_days} days from today"
            )

    async def _get(self, table: str, row_id: int, model: Type[ModelT], label: str) -> ModelT:
        rows = await self.store.select(table, [eq("id", row_id)])
        if not rows:
            raise NotFound(f"{label} not found")
        return model.from_row(rows[0])

    async def _day_dates(self, day_ids: Iterable[int]) -> List[str]:
        ids = sorted(set(day_ids))
        if not ids:
            return []
        rows = await self.store.select(DAY, [in_("id", ids)])
        return sorted(Day.from_row(row).ymd for row in rows)

    async def _resolve_poc(self, form: Form) -> Optional[int]:
        """A point of contact given by id, or by name (found or created)."""
        value = get_str(form, "poc")
        if value is None:
            return None
        try:
            return get_int(form, "poc")
        except InvalidInput:
            pass

        existing = await self.store.select(POINT_OF_CONTACT, [ilike("name", escape_like(value))])
        if existing:
            return existing[0]["id"]
        try:
            created = await self.store.insert(POINT_OF_CONTACT, {"name": value})
        except StoreError as exc:
            LOGGER.warning("board.poc_create_failed", name=value, error=str(exc))
            return None
        return created[0]["id"] if created else None

    async def _program_values(self, form: Form) -> Row:
        return {
            "title": get_str(form, "title"),
            "description": get_str(form, "description"),
            "guestCount": get_int(form, "size"),
            "capacity": get_int(form, "capacity"),
            "venueTypeId": optional_id(form, "venueType"),
            "pocId": await self._resolve_poc(form),
            "startTime": get_str(form, "startTime"),
            "endTime": get_str(form, "endTime"),
            "notes": get_str(form, "notes"),
            "isTourOperator": is_checked(form, "isTourOperator"),
        }

    @editor_action
    async def create_program_item(self, form: Form, item_type: Union[str, ProgramItemType]) -> ActionResult:
        """Create one item, or a whole series when ``isRecurring`` is ``"true"``."""
        item_type = parse_item_type(item_type)
        start = require_date(form, "date", message="Date is required")
        self._check_schedulable(start)

        recurring = is_true(form, "isRecurring")
        frequency = get_str(form, "recurrenceFrequency")
        if recurring and frequency is None:
            raise InvalidInput("Recurrence frequency is required for recurring entries")

        values = {"type": item_type.value, **(await self._program_values(form))}

        if recurring:
            plan = plan_series(start, frequency, window_days=self.settings.recurrence_window_days)
            creation = await create_series(self.store, values, plan, language=self._language)
            if not creation.count:
                return ActionResult.failure("No entries created")
            return ActionResult(
                ok=True,
                count=creation.count,
                data={"recurrenceGroupId": plan.group_id},
                affected_dates=_sorted_dates(creation.affected_dates),
            )

        day = await ensure_day(self.store, start, language=self._language)
        rows = await self.store.insert(
            PROGRAM_ITEM,
            {
                **values,
                "dayId": day.id,
                "isRecurring": False,
                "recurrenceFrequency": None,
                "recurrenceGroupId": None,
            },
        )
        LOGGER.info("board.program_item_created", item_type=item_type.value, date=day.ymd)
        return ActionResult(ok=True, data=rows[0] if rows else None, affected_dates=[day.ymd])

    @editor_action
    async def update_program_item(self, form: Form, item_type: Union[str, ProgramItemType]) -> ActionResult:
        """Edit one occurrence, or every occurrence when ``updateAllRecurring`` is ``"true"``.

        Recurrence attributes are never rewritten by an edit.
        """
        item_type = parse_item_type(item_type)
        item_id = require_id(form, label="entry ID")
        current = await self._get(PROGRAM_ITEM, item_id, ProgramItem, "Entry")
        if current.type is not item_type:
            raise NotFound("Entry not found")

        values = await self._program_values(form)

        if is_true(form, "updateAllRecurring") and current.is_recurring:
            match = await find_occurrences(self.store, current)
            if match.items:
                dates = await occurrence_dates(self.store, match.items)
                rows = await update_series(self.store, match, values)
                LOGGER.info(
                    "board.series_updated",
                    item_id=item_id,
                    group_id=match.group_id,
                    updated=len(rows),
                )
                return ActionResult(ok=True, count=len(rows), affected_dates=dates)

        await self.store.update(PROGRAM_ITEM, values, [eq("id", item_id)])
        return ActionResult(ok=True, affected_dates=await self._day_dates([current.day_id]))

    @editor_action
    async def delete_program_item(self, form: Form, item_type: Union[str, ProgramItemType]) -> ActionResult:
        """Delete one occurrence, or the whole series when ``deleteAllRecurring`` is ``"true"``."""
        item_type = parse_item_type(item_type)
        item_id = require_id(form, label="entry ID")
        current = await self._get(PROGRAM_ITEM, item_id, ProgramItem, "Entry")
        if current.type is not item_type:
            raise NotFound("Entry not found")

        if is_true(form, "deleteAllRecurring"):
            match = await find_occurrences(self.store, current)
            if match.items:
                dates = await occurrence_dates(self.store, match.items)
                rows = await delete_series(self.store, match)
                LOGGER.info(
                    "board.series_deleted",
                    item_id=item_id,
                    group_id=match.group_id,
                    deleted=len(rows),
                )
                return ActionResult(ok=True, count=len(rows), affected_dates=dates)

        await self.store.delete(PROGRAM_ITEM, [eq("id", item_id)])
        return ActionResult(ok=True, affected_dates=await self._day_dates([current.day_id]))

    async def create_golf_item(self, form: Form) -> ActionResult:
        return await self.create_program_item(form, ProgramItemType.GOLF)

    async def update_golf_item(self, form: Form) -> ActionResult:
        return await self.update_program_item(form, ProgramItemType.GOLF)

    async def delete_golf_item(self, form: Form) -> ActionResult:
        return await self.delete_program_item(form, ProgramItemType.GOLF)

    async def create_event_item(self, form: Form) -> ActionResult:
        return await self.create_program_item(form, ProgramItemType.EVENT)

    async def update_event_item(self, form: Form) -> ActionResult:
        return await self.update_program_item(form, ProgramItemType.EVENT)

    async def delete_event_item(self, form: Form) -> ActionResult:
        return await self.delete_program_item(form, ProgramItemType.EVENT)

    async def count_other_occurrences(self, item_id: int, item_type: Union[str, ProgramItemType]) -> int:
        """Occurrences besides ``item_id`` in its series; 0 when it does not recur."""
        try:
            rows = await self.store.select(
                PROGRAM_ITEM, [eq("id", item_id), eq("type", parse_item_type(item_type).value)]
            )
            if not rows:
                return 0
            match = await find_occurrences(self.store, ProgramItem.from_row(rows[0]))
        except FairwayError as exc:
            LOGGER.error("board.count_occurrences_failed", item_id=item_id, error=str(exc))
            return 0
        return match.other_count

    def _reservation_values(self, form: Form) -> Row:
        values = {
            "guestName": get_str(form, "guestName"),
            "phoneNumber": get_str(form, "phoneNumber"),
            "email": get_str(form, "email"),
            "guestCount": get_int(form, "guestCount"),
            "startTime": get_str(form, "startTime"),
            "endTime": get_str(form, "endTime"),
            "notes": get_str(form, "notes"),
            "isTourOperator": is_checked(form, "isTourOperator"),
            "programItemId": optional_id(form, "programItemId"),
            "tableIndex": get_int(form, "tableIndex"),
        }
        if values["tableIndex"] is not None:
            if values["programItemId"] is None:
                raise InvalidInput("A table assignment needs a programme item")
            if values["tableIndex"] < 0:
                raise InvalidInput("Invalid table index")
        return values

    @editor_action
    async def create_reservation(self, form: Form) -> ActionResult:
        day_value = require_date(form, "date", message="Date is required")
        self._check_schedulable(day_value)
        values = self._reservation_values(form)
        values["hotelBookingId"] = optional_id(form, "hotelBookingId")

        day = await ensure_day(self.store, day_value, language=self._language)
        rows = await self.store.insert(RESERVATION, {**values, "dayId": day.id})
        return ActionResult(ok=True, data=rows[0] if rows else None, affected_dates=[day.ymd])

    @editor_action
    async def update_reservation(self, form: Form) -> ActionResult:
        reservation_id = require_id(form, label="entry ID")
        values = self._reservation_values(form)
        current = await self._get(RESERVATION, reservation_id, Reservation, "Reservation")
        await self.store.update(RESERVATION, values, [eq("id", reservation_id)])
        return ActionResult(ok=True, affected_dates=await self._day_dates([current.day_id]))

    @editor_action
    async def delete_reservation(self, form: Form) -> ActionResult:
        reservation_id = require_id(form, label="entry ID")
        current = await self._get(RESERVATION, reservation_id, Reservation, "Reservation")
        await self.store.delete(RESERVATION, [eq("id", reservation_id)])
        return ActionResult(ok=True, affected_dates=await self._day_dates([current.day_id]))

    def _stay_dates(self, form: Form) -> tuple[datetime, datetime]:
        message = "Check-in and check-out dates are required"
        check_in = require_date(form, "checkInDate", message=message)
        check_out = require_date(form, "checkOutDate", message=message)
        self._check_schedulable(check_in, label="Check-in date")
        if not is_date_within_horizon(
            check_out, horizon_days=self.settings.horizon_days, today=self.today()
        ):
            raise PastOrOutOfHorizonDate(
                f"Check-out date must be within {self.settings.horizon_days} days from today"
            )
        if check_out <= check_in:
            raise InvalidInput("Check-out date must be after check-in date")
        return check_in, check_out

    @staticmethod
    def _booking_values(form: Form, check_in: datetime, check_out: datetime) -> Row:
        return {
            "guestName": get_str(form, "guestName"),
            "guestCount": get_int(form, "guestCount"),
            "checkInDate": format_ymd(check_in),
            "checkOutDate": format_ymd(check_out),
            "notes": get_str(form, "notes"),
            "isTourOperator": is_checked(form, "isTourOperator"),
        }

    async def _write_derived(self, booking: HotelBooking, plan: StayPlan, *, strict: bool) -> int:
        """Insert the breakfasts and reservations planned for a stay.

        With ``strict`` the first failure aborts; otherwise failing days are
        logged and skipped.
        """
        written = 0
        for breakfast in plan.breakfasts:
            try:
                await ensure_day(self.store, breakfast.breakfast_date, language=self._language)
                await self.store.insert(BREAKFAST_CONFIGURATION, breakfast.to_row(booking.id))
                written += 1
            except StoreError as exc:
                if strict:
                    raise StoreError(f"Failed to save breakfast for {breakfast.ymd}: {exc}") from exc
                LOGGER.warning(
                    "booking.derived_insert_failed",
                    booking_id=booking.id,
                    kind="breakfast",
                    date=breakfast.ymd,
                    error=str(exc),
                )

        for reservation in plan.reservations:
            try:
                day = await ensure_day(self.store, reservation.reservation_date, language=self._language)
                await self.store.insert(
                    RESERVATION,
                    reservation.to_row(
                        day_id=day.id,
                        hotel_booking_id=booking.id,
                        guest_name=booking.guest_name,
                        is_tour_operator=booking.is_tour_operator,
                    ),
                )
                written += 1
            except StoreError as exc:
                if strict:
                    raise StoreError(f"Failed to save reservation for {reservation.ymd}: {exc}") from exc
                LOGGER.warning(
                    "booking.derived_insert_failed",
                    booking_id=booking.id,
                    kind="reservation",
                    date=reservation.ymd,
                    error=str(exc),
                )
        return written

    async def _clear_derived(self, booking_id: int) -> None:
        await self.store.delete(BREAKFAST_CONFIGURATION, [eq("hotelBookingId", booking_id)])
        await self.store.delete(RESERVATION, [eq("hotelBookingId", booking_id)])

    @editor_action
    async def create_hotel_booking(self, form: Form) -> ActionResult:
        check_in, check_out = self._stay_dates(form)
        plan = plan_stay_records(form, check_in, check_out)
        values = self._booking_values(form, check_in, check_out)

        await ensure_days_range(self.store, check_in, add_days(check_out, -1), language=self._language)
        rows = await self.store.insert(HOTEL_BOOKING, values)
        if not rows:
            raise StoreError("Hotel booking insert returned no row")
        booking = HotelBooking.from_row(rows[0])
        written = await self._write_derived(booking, plan, strict=False)

        LOGGER.info(
            "booking.created",
            booking_id=booking.id,
            check_in=format_ymd(check_in),
            check_out=format_ymd(check_out),
            derived=written,
        )
        return ActionResult(
            ok=True,
            data=rows[0],
            affected_dates=_sorted_dates(map(format_ymd, reservation_days(check_in, check_out))),
        )

    @editor_action
    async def update_hotel_booking(self, form: Form) -> ActionResult:
        """Rewrite a stay and regenerate its breakfasts and reservations from the form.

        Derived records not resubmitted with the form are gone afterwards.
        """
        booking_id = require_id(form, label="booking ID")
        check_in, check_out = self._stay_dates(form)
        plan = plan_stay_records(form, check_in, check_out)
        existing = await self._get(HOTEL_BOOKING, booking_id, HotelBooking, "Hotel booking")

        async with self.store.transaction():
            await ensure_days_range(self.store, check_in, add_days(check_out, -1), language=self._language)
            values = {**self._booking_values(form, check_in, check_out), "updatedAt": _now_iso()}
            rows = await self.store.update(HOTEL_BOOKING, values, [eq("id", booking_id)])
            booking = HotelBooking.from_row(rows[0]) if rows else existing
            await self._clear_derived(booking_id)
            written = await self._write_derived(booking, plan, strict=True)

        LOGGER.info("booking.updated", booking_id=booking_id, derived=written)
        old_days = reservation_days(existing.check_in_date, existing.check_out_date)
        new_days = reservation_days(check_in, check_out)
        return ActionResult(
            ok=True,
            data=rows[0] if rows else None,
            affected_dates=_sorted_dates(map(format_ymd, old_days), map(format_ymd, new_days)),
        )

    @editor_action
    async def delete_hotel_booking(self, form: Form) -> ActionResult:
        booking_id = require_id(form, label="booking ID")
        existing = await self._get(HOTEL_BOOKING, booking_id, HotelBooking, "Hotel booking")
        async with self.store.transaction():
            await self._clear_derived(booking_id)
            await self.store.delete(HOTEL_BOOKING, [eq("id", booking_id)])
        LOGGER.info("booking.deleted", booking_id=booking_id)
        return ActionResult(
            ok=True,
            affected_dates=_sorted_dates(
                map(format_ymd, reservation_days(existing.check_in_date, existing.check_out_date))
            ),
        )

    async def get_hotel_bookings_for_range(self, start: str, end: str) -> ActionResult:
        """Stays covering at least one night between ``start`` and ``end`` inclusive."""
        try:
            first, last = parse_ymd(start), parse_ymd(end)
            rows = await self.store.select(
                HOTEL_BOOKING,
                [lte("checkInDate", format_ymd(last)), gt("checkOutDate", format_ymd(first))],
                order_by="checkInDate",
            )
            bookings = [HotelBooking.from_row(row) for row in rows]
        except FairwayError as exc:
            LOGGER.error("board.bookings_fetch_failed", start=start, end=end, error=str(exc))
            return ActionResult(ok=False, error=str(exc), data=[])
        return ActionResult(ok=True, data=bookings)

    @staticmethod
    def _breakfast_fields(form: Form) -> Row:
        raw = get_str(form, "tableBreakdown") or ""
        tables = parse_table_breakdown(raw)
        if not tables and raw:
            raise InvalidInput('Invalid table breakdown. Use a format like "3+2+1"')
        return {
            "tableBreakdown": tables,
            "totalGuests": sum(tables),
            "startTime": get_str(form, "startTime") or first_table_time(get_str(form, "tableTimes")),
            "notes": get_str(form, "notes"),
        }

    @staticmethod
    def _check_breakfast_window(value: datetime, booking: HotelBooking) -> None:
        if not in_breakfast_window(value, booking.check_in_date, booking.check_out_date):
            raise InvalidInput("Breakfast date must fall within the booking's stay")

    @editor_action
    async def create_breakfast_configuration(self, form: Form) -> ActionResult:
        if get_str(form, "hotelBookingId") is None:
            raise InvalidInput("Hotel booking is required")
        booking_id = require_id(form, "hotelBookingId", label="hotel booking ID")
        breakfast_date = require_date(form, "breakfastDate", message="Breakfast date is required")
        fields = self._breakfast_fields(form)

        booking = await self._get(HOTEL_BOOKING, booking_id, HotelBooking, "Hotel booking")
        self._check_breakfast_window(breakfast_date, booking)

        await ensure_day(self.store, breakfast_date, language=self._language)
        ymd = format_ymd(breakfast_date)
        rows = await self.store.insert(
            BREAKFAST_CONFIGURATION,
            {"hotelBookingId": booking_id, "breakfastDate": ymd, **fields},
        )
        return ActionResult(ok=True, data=rows[0] if rows else None, affected_dates=[ymd])

    @editor_action
    async def update_breakfast_configuration(self, form: Form) -> ActionResult:
        config_id = require_id(form, label="breakfast configuration ID")
        breakfast_date = require_date(form, "breakfastDate", message="Breakfast date is required")
        fields = self._breakfast_fields(form)

        existing = await self._get(
            BREAKFAST_CONFIGURATION, config_id, BreakfastConfiguration, "Breakfast configuration"
        )
        booking = await self._get(HOTEL_BOOKING, existing.hotel_booking_id, HotelBooking, "Hotel booking")
        self._check_breakfast_window(breakfast_date, booking)

        ymd = format_ymd(breakfast_date)
        await ensure_day(self.store, breakfast_date, language=self._language)
        await self.store.update(
            BREAKFAST_CONFIGURATION,
            {"breakfastDate": ymd, **fields, "updatedAt": _now_iso()},
            [eq("id", config_id)],
        )
        return ActionResult(ok=True, affected_dates=_sorted_dates([existing.breakfast_date.isoformat(), ymd]))

    @editor_action
    async def delete_breakfast_configuration(self, form: Form) -> ActionResult:
        config_id = require_id(form, label="breakfast configuration ID")
        existing = await self._get(
            BREAKFAST_CONFIGURATION, config_id, BreakfastConfiguration, "Breakfast configuration"
        )
        await self.store.delete(BREAKFAST_CONFIGURATION, [eq("id", config_id)])
        return ActionResult(ok=True, affected_dates=[existing.breakfast_date.isoformat()])

    async def get_breakfast_configurations_for_day(self, ymd: str) -> ActionResult:
        try:
            rows = await self.store.select(
                BREAKFAST_CONFIGURATION,
                [eq("breakfastDate", format_ymd(parse_ymd(ymd)))],
                order_by="startTime",
            )
            configs = [BreakfastConfiguration.from_row(row) for row in rows]
        except FairwayError as exc:
            LOGGER.error("board.breakfasts_fetch_failed", date=ymd, error=str(exc))
            return ActionResult(ok=False, error=str(exc), data=[])
        return ActionResult(ok=True, data=configs)

    async def _check_unique(
        self, table: str, checks: Iterable[Tuple[Filter, str]], *, exclude_id: Optional[int] = None
    ) -> None:
        for condition, message in checks:
            filters = [condition]
            if exclude_id is not None:
                filters.append(neq("id", exclude_id))
            if await self.store.select(table, filters):
                raise InvalidInput(message)

    async def _referencing_items(self, column: str, row_id: int) -> List[ProgramItem]:
        return [ProgramItem.from_row(row) for row in await self.store.select(PROGRAM_ITEM, [eq(column, row_id)])]

    async def _list_by_name(self, table: str, model: Type[ModelT], event: str) -> ActionResult:
        try:
            rows = await self.store.select(table, order_by="name")
            return ActionResult(ok=True, data=[model.from_row(row) for row in rows])
        except FairwayError as exc:
            LOGGER.error(event, error=str(exc))
            return ActionResult(ok=False, error=str(exc), data=[])

    async def get_points_of_contact(self) -> ActionResult:
        return await self._list_by_name(POINT_OF_CONTACT, PointOfContact, "settings.pocs_fetch_failed")

    @staticmethod
    def _poc_values(form: Form) -> Row:
        name = get_str(form, "name")
        if name is None:
            raise InvalidInput("Name is required")
        return {
            "name": name,
            "role": get_str(form, "role"),
            "email": get_str(form, "email"),
            "phoneNumber": get_str(form, "phoneNumber"),
        }

    async def _check_poc_unique(self, values: Row, *, exclude_id: Optional[int] = None) -> None:
        """Names and emails are compared case-insensitively, phone numbers exactly."""
        checks = [(ilike("name", escape_like(values["name"])), "A POC with this name already exists")]
        if values["email"]:
            checks.append((ilike("email", escape_like(values["email"])), "A POC with this email already exists"))
        if values["phoneNumber"]:
            checks.append((eq("phoneNumber", values["phoneNumber"]), "A POC with this phone number already exists"))
        await self._check_unique(POINT_OF_CONTACT, checks, exclude_id=exclude_id)

    @editor_action
    async def create_point_of_contact(self, form: Form) -> ActionResult:
        values = self._poc_values(form)
        await self._check_poc_unique(values)
        rows = await self.store.insert(POINT_OF_CONTACT, values)
        LOGGER.info("settings.poc_created", name=values["name"])
        return ActionResult(ok=True, data=rows[0] if rows else None)

    @editor_action
    async def update_point_of_contact(self, form: Form) -> ActionResult:
        """Rename or re-detail a POC; every day showing it is reported as affected."""
        poc_id = require_id(form, label="POC ID")
        values = self._poc_values(form)
        await self._get(POINT_OF_CONTACT, poc_id, PointOfContact, "POC")
        await self._check_poc_unique(values, exclude_id=poc_id)

        rows = await self.store.update(POINT_OF_CONTACT, {**values, "updatedAt": _now_iso()}, [eq("id", poc_id)])
        items = await self._referencing_items("pocId", poc_id)
        return ActionResult(
            ok=True,
            data=rows[0] if rows else None,
            affected_dates=await self._day_dates(item.day_id for item in items),
        )

    @editor_action
    async def delete_point_of_contact(self, form: Form) -> ActionResult:
        poc_id = require_id(form, label="POC ID")
        await self._get(POINT_OF_CONTACT, poc_id, PointOfContact, "POC")
        if await self._referencing_items("pocId", poc_id):
            raise InvalidInput("Cannot delete POC: it is referenced in one or more program items")
        await self.store.delete(POINT_OF_CONTACT, [eq("id", poc_id)])
        LOGGER.info("settings.poc_deleted", poc_id=poc_id)
        return ActionResult(ok=True)

    async def get_venue_types(self) -> ActionResult:
        return await self._list_by_name(VENUE_TYPE, VenueType, "settings.venue_types_fetch_failed")

    @staticmethod
    def _venue_type_values(form: Form) -> Row:
        name = get_str(form, "name")
        if name is None:
            raise InvalidInput("Name is required")
        return {"name": name, "code": get_str(form, "code") or venue_code(name)}

    async def _check_venue_type_unique(self, values: Row, *, exclude_id: Optional[int] = None) -> None:
        checks = [
            (eq("name", values["name"]), "A venue type with this name already exists"),
            (eq("code", values["code"]), "A venue type with this code already exists"),
        ]
        await self._check_unique(VENUE_TYPE, checks, exclude_id=exclude_id)

    @editor_action
    async def create_venue_type(self, form: Form) -> ActionResult:
        values = self._venue_type_values(form)
        await self._check_venue_type_unique(values)
        rows = await self.store.insert(VENUE_TYPE, values)
        LOGGER.info("settings.venue_type_created", code=values["code"])
        return ActionResult(ok=True, data=rows[0] if rows else None)

    @editor_action
    async def update_venue_type(self, form: Form) -> ActionResult:
        venue_type_id = require_id(form, label="venue type ID")
        values = self._venue_type_values(form)
        await self._get(VENUE_TYPE, venue_type_id, VenueType, "Venue type")
        await self._check_venue_type_unique(values, exclude_id=venue_type_id)

        rows = await self.store.update(VENUE_TYPE, {**values, "updatedAt": _now_iso()}, [eq("id", venue_type_id)])
        items = await self._referencing_items("venueTypeId", venue_type_id)
        return ActionResult(
            ok=True,
            data=rows[0] if rows else None,
            affected_dates=await self._day_dates(item.day_id for item in items),
        )

    @editor_action
    async def delete_venue_type(self, form: Form) -> ActionResult:
        venue_type_id = require_id(form, label="venue type ID")
        await self._get(VENUE_TYPE, venue_type_id, VenueType, "Venue type")
        if await self._referencing_items("venueTypeId", venue_type_id):
            raise InvalidInput("Cannot delete venue type: it is referenced in one or more program items")
        await self.store.delete(VENUE_TYPE, [eq("id", venue_type_id)])
        LOGGER.info("settings.venue_type_deleted", venue_type_id=venue_type_id)
        return ActionResult(ok=True)

    @editor_action
    async def ensure_default_days(self) -> ActionResult:
        """Create the Day rows of the rolling window that starts today."""
        days = await ensure_default_days(
            self.store, self.today(), days=self.settings.default_days_window, language=self._language
        )
        return ActionResult(ok=True, count=len(days))

    async def get_day_data(self, start: Union[str, DateLike], end: Union[str, DateLike]) -> DayDataMap:
        """:class:`DayData` for every date with something on it between ``start`` and ``end``."""
        try:
            first = parse_ymd(start) if isinstance(start, str) else to_instant(start)
            last = parse_ymd(end) if isinstance(end, str) else to_instant(end)
            return await fetch_day_data(self.store, first, last)
        except FairwayError as exc:
            LOGGER.error("board.day_data_failed", start=str(start), end=str(end), error=str(exc))
            return {}

    async def get_month_data(self, year: int, month: int, *, include_past: bool = False) -> DayDataMap:
        """Day data for a calendar month, from today onwards unless ``include_past``."""
        month_range = month_date_range(year, month)
        start = month_range.start
        if not include_past:
            start = max(start, self.today())
        if start > month_range.end:
            return {}
        return await self.get_day_data(start, month_range.end)

    def month_calendar(self, *, include_past: bool = False) -> MonthCalendar:
        """A cached month view that refreshes itself after this board's mutations."""
        calendar = MonthCalendar(
            lambda start, end: fetch_day_data(self.store, start, end),
            timezone_name=self.settings.timezone,
            include_past=include_past,
            today=self.today,
        )
        self.subscribe(calendar.report_mutation)
        return calendar
