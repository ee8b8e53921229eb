"""Pydantic models for the rows kept by the store and the views built from them.

Field names are snake_case in Python; the store speaks camelCase, so every
model accepts and dumps the camelCase aliases.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .dates import format_ymd
from .errors import StoreError

DAY = "Day"
PROGRAM_ITEM = "ProgramItem"
RESERVATION = "Reservation"
HOTEL_BOOKING = "HotelBooking"
BREAKFAST_CONFIGURATION = "BreakfastConfiguration"
VENUE_TYPE = "VenueType"
POINT_OF_CONTACT = "PointOfContact"


class ProgramItemType(str, Enum):
    GOLF = "golf"
    EVENT = "event"


class RecurrenceFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


RowT = TypeVar("RowT", bound="StoreRow")


def _row_id(row: object) -> Any:
    return row.get("id") if isinstance(row, Mapping) else None


class StoreRow(BaseModel):
    """Common configuration for rows read back from the store."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_row(cls: Type[RowT], row: Mapping[str, Any]) -> RowT:
        """Validate a stored row; a row the model rejects is a store failure."""
        try:
            return cls.model_validate(row)
        except ValidationError as exc:
            raise StoreError(
                f"Unreadable {cls.__name__} row {_row_id(row)!r}: {exc.error_count()} invalid field(s)"
            ) from exc

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Day(StoreRow):
    """One calendar date; at most one per wall-date."""

    id: int
    date_iso: datetime = Field(alias="dateISO")
    weekday: Optional[str] = None

    @property
    def ymd(self) -> str:
        return format_ymd(self.date_iso)


class VenueType(StoreRow):
    id: int
    name: Optional[str] = None
    code: Optional[str] = None


class PointOfContact(StoreRow):
    id: int
    name: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")


class ProgramItem(StoreRow):
    """A golf or event slot on a day, possibly one occurrence of a series."""

    id: int
    day_id: int = Field(alias="dayId")
    type: ProgramItemType
    title: Optional[str] = None
    description: Optional[str] = None
    guest_count: Optional[int] = Field(default=None, alias="guestCount")
    capacity: Optional[int] = None
    venue_type_id: Optional[int] = Field(default=None, alias="venueTypeId")
    poc_id: Optional[int] = Field(default=None, alias="pocId")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    notes: Optional[str] = None
    is_tour_operator: bool = Field(default=False, alias="isTourOperator")
    is_recurring: bool = Field(default=False, alias="isRecurring")
    recurrence_frequency: Optional[RecurrenceFrequency] = Field(default=None, alias="recurrenceFrequency")
    recurrence_group_id: Optional[str] = Field(default=None, alias="recurrenceGroupId")
    venue: Optional[VenueType] = Field(default=None, alias="venueType")
    poc: Optional[PointOfContact] = None


class Reservation(StoreRow):
    """A restaurant reservation, optionally tied to a table or a stay."""

    id: int
    day_id: int = Field(alias="dayId")
    guest_name: Optional[str] = Field(default=None, alias="guestName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    email: Optional[str] = None
    guest_count: Optional[int] = Field(default=None, alias="guestCount")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    notes: Optional[str] = None
    is_tour_operator: bool = Field(default=False, alias="isTourOperator")
    program_item_id: Optional[int] = Field(default=None, alias="programItemId")
    table_index: Optional[int] = Field(default=None, alias="tableIndex")
    hotel_booking_id: Optional[int] = Field(default=None, alias="hotelBookingId")


class HotelBooking(StoreRow):
    """A stay from the check-in date to the morning of departure."""

    id: int
    guest_name: Optional[str] = Field(default=None, alias="guestName")
    guest_count: Optional[int] = Field(default=None, alias="guestCount")
    check_in_date: date = Field(alias="checkInDate")
    check_out_date: date = Field(alias="checkOutDate")
    notes: Optional[str] = None
    is_tour_operator: bool = Field(default=False, alias="isTourOperator")

    def covers(self, day: date) -> bool:
        """Nights slept: check-in inclusive, check-out exclusive."""
        return self.check_in_date <= day < self.check_out_date


class BreakfastConfiguration(StoreRow):
    """Breakfast seating for one booking on one morning."""

    id: int
    hotel_booking_id: int = Field(alias="hotelBookingId")
    breakfast_date: date = Field(alias="breakfastDate")
    table_breakdown: List[int] = Field(default_factory=list, alias="tableBreakdown")
    total_guests: int = Field(default=0, alias="totalGuests")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def derive_total(self) -> "BreakfastConfiguration":
        self.total_guests = sum(self.table_breakdown)
        return self


class DayData(BaseModel):
    """Everything scheduled on one wall-date, rebuilt on every fetch."""

    ymd: str
    hotel_bookings: List[HotelBooking] = Field(default_factory=list)
    breakfast_configs: List[BreakfastConfiguration] = Field(default_factory=list)
    golf_items: List[ProgramItem] = Field(default_factory=list)
    event_items: List[ProgramItem] = Field(default_factory=list)
    reservations: List[Reservation] = Field(default_factory=list)

    @property
    def has_activity(self) -> bool:
        return bool(
            self.hotel_bookings
            or self.breakfast_configs
            or self.golf_items
            or self.event_items
            or self.reservations
        )

    @property
    def breakfast_guests(self) -> int:
        return sum(config.total_guests for config in self.breakfast_configs)


class ActionResult(BaseModel):
    """Outcome of a board operation, shaped for the page layer."""

    ok: bool
    error: Optional[str] = None
    count: Optional[int] = None
    data: Any = None
    affected_dates: List[str] = Field(default_factory=list)

    @classmethod
    def failure(cls, error: str) -> "ActionResult":
        return cls(ok=False, error=error)
