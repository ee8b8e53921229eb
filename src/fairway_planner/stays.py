"""Per-day records derived from a hotel stay.

A stay from ``check_in`` to ``check_out`` needs a breakfast on every morning
after a night slept (``check_in + 1`` through ``check_out``) and may take a
restaurant reservation on any day from arrival through departure.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .dates import DateLike, add_days, date_range, format_ymd, to_instant
from .forms import Form, get_int, get_str
from .store import Row


def breakfast_days(check_in: DateLike, check_out: DateLike) -> List[datetime]:
    """Mornings needing a breakfast: every night but the arrival night, as the next morning."""
    return date_range(add_days(check_in, 1), check_out)


def reservation_days(check_in: DateLike, check_out: DateLike) -> List[datetime]:
    """Arrival day through departure day, inclusive."""
    return date_range(check_in, check_out)


def nights(check_in: DateLike, check_out: DateLike) -> List[datetime]:
    """Dates covered by the stay: check-in inclusive, check-out exclusive."""
    return date_range(check_in, add_days(check_out, -1))


def in_breakfast_window(value: DateLike, check_in: DateLike, check_out: DateLike) -> bool:
    """Whether a breakfast may be served on ``value`` for this stay."""
    return to_instant(check_in) < to_instant(value) <= to_instant(check_out)


def parse_table_breakdown(value: Optional[str]) -> List[int]:
    """Parse ``"3+2+1"`` into ``[3, 2, 1]``, dropping blank and non-positive parts."""
    if not value or not value.strip():
        return []
    tables: List[int] = []
    for part in value.split("+"):
        part = part.strip()
        if not part:
            continue
        try:
            number = float(part)
        except ValueError:
            continue
        if math.isfinite(number) and number > 0 and number == int(number):
            tables.append(int(number))
    return tables


def first_table_time(value: Optional[str]) -> Optional[str]:
    """The first table's seating time from ``"08:00+08:30"``."""
    if not value:
        return None
    for part in value.split("+"):
        if part.strip():
            return part.strip()
    return None


@dataclass(frozen=True)
class BreakfastPlan:
    breakfast_date: datetime
    table_breakdown: List[int]
    start_time: Optional[str] = None
    notes: Optional[str] = None

    @property
    def ymd(self) -> str:
        return format_ymd(self.breakfast_date)

    def to_row(self, hotel_booking_id: int) -> Row:
        return {
            "hotelBookingId": hotel_booking_id,
            "breakfastDate": self.ymd,
            "tableBreakdown": list(self.table_breakdown),
            "totalGuests": sum(self.table_breakdown),
            "startTime": self.start_time,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class ReservationPlan:
    reservation_date: datetime
    guest_count: int
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = None

    @property
    def ymd(self) -> str:
        return format_ymd(self.reservation_date)

    def to_row(self, *, day_id: int, hotel_booking_id: int, guest_name: Optional[str], is_tour_operator: bool) -> Row:
        return {
            "dayId": day_id,
            "hotelBookingId": hotel_booking_id,
            "guestName": guest_name,
            "guestCount": self.guest_count,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "notes": self.notes,
            "isTourOperator": is_tour_operator,
        }


@dataclass
class StayPlan:
    """Derived records requested for one stay."""

    breakfasts: List[BreakfastPlan] = field(default_factory=list)
    reservations: List[ReservationPlan] = field(default_factory=list)


def plan_stay_records(form: Form, check_in: DateLike, check_out: DateLike) -> StayPlan:
    """Read the per-day overrides submitted with a stay.

    Overrides are keyed by position in :func:`breakfast_days` /
    :func:`reservation_days` (``breakfast_0_date``, ``reservation_2_guestCount``...)
    and only count when their ``_date`` field names the day at that position.
    Days without a matching override get no record.
    """
    plan = StayPlan()

    for index, morning in enumerate(breakfast_days(check_in, check_out)):
        prefix = f"breakfast_{index}_"
        if get_str(form, prefix + "date") != format_ymd(morning):
            continue
        tables = parse_table_breakdown(get_str(form, prefix + "tableBreakdown"))
        if not tables:
            continue
        plan.breakfasts.append(
            BreakfastPlan(
                breakfast_date=morning,
                table_breakdown=tables,
                start_time=first_table_time(get_str(form, prefix + "tableTimes")),
                notes=get_str(form, prefix + "notes"),
            )
        )

    for index, day in enumerate(reservation_days(check_in, check_out)):
        prefix = f"reservation_{index}_"
        if get_str(form, prefix + "date") != format_ymd(day):
            continue
        guest_count = get_int(form, prefix + "guestCount") or 0
        if guest_count <= 0:
            continue
        plan.reservations.append(
            ReservationPlan(
                reservation_date=day,
                guest_count=guest_count,
                start_time=get_str(form, prefix + "startTime"),
                end_time=get_str(form, prefix + "endTime"),
                notes=get_str(form, prefix + "notes"),
            )
        )

    return plan
