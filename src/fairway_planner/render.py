"""Plain-text rendering of day data for the command line."""

from __future__ import annotations

from typing import Mapping, Optional

from .dates import parse_ymd, weekday_name
from .models import DayData, HotelBooking, ProgramItem, Reservation


def format_day(day: DayData, language: str = "fr") -> str:
    """Build a readable summary of everything scheduled on one date."""
    lines: list[str] = [f"{weekday_name(parse_ymd(day.ymd), language)} ({day.ymd})"]

    if not day.has_activity:
        lines.append("Nothing scheduled.")
        return "\n".join(lines)

    if day.hotel_bookings:
        lines.append("")
        lines.append("Hotel guests:")
        for booking in day.hotel_bookings:
            lines.append(f"- {format_booking(booking)}")

    if day.breakfast_configs:
        lines.append("")
        lines.append(f"Breakfast ({day.breakfast_guests} guests):")
        for config in day.breakfast_configs:
            tables = "+".join(str(size) for size in config.table_breakdown) or "no tables"
            pieces = [tables]
            if config.start_time:
                pieces.append(config.start_time)
            if config.notes:
                pieces.append(config.notes)
            lines.append(f"- {' | '.join(pieces)}")

    for label, items in (("Golf", day.golf_items), ("Events", day.event_items)):
        if items:
            lines.append("")
            lines.append(f"{label}:")
            for item in items:
                lines.append(f"- {format_item(item)}")

    if day.reservations:
        lines.append("")
        lines.append("Restaurant:")
        for reservation in day.reservations:
            lines.append(f"- {format_reservation(reservation)}")

    return "\n".join(lines)


def format_booking(booking: HotelBooking) -> str:
    pieces = [booking.guest_name or "Unnamed guest"]
    if booking.guest_count is not None:
        pieces.append(_guests(booking.guest_count))
    pieces.append(f"{booking.check_in_date.isoformat()} -> {booking.check_out_date.isoformat()}")
    if booking.is_tour_operator:
        pieces.append("Tour operator")
    return " | ".join(pieces)


def format_item(item: ProgramItem) -> str:
    """Format a single golf or event slot."""
    pieces = [_time_span(item.start_time, item.end_time), item.title or "Untitled"]
    if item.guest_count is not None:
        if item.capacity:
            pieces.append(f"{item.guest_count}/{item.capacity} guests")
        else:
            pieces.append(_guests(item.guest_count))
    if item.venue and item.venue.name:
        pieces.append(item.venue.name)
    if item.poc and item.poc.name:
        pieces.append(f"POC {item.poc.name}")
    if item.recurrence_frequency is not None:
        pieces.append(f"repeats {item.recurrence_frequency.value}")
    return " | ".join(piece for piece in pieces if piece)


def format_reservation(reservation: Reservation) -> str:
    pieces = [
        _time_span(reservation.start_time, reservation.end_time),
        reservation.guest_name or "Unnamed guest",
    ]
    if reservation.guest_count is not None:
        pieces.append(_guests(reservation.guest_count))
    if reservation.table_index is not None:
        pieces.append(f"table {reservation.table_index + 1}")
    if reservation.hotel_booking_id is not None:
        pieces.append("hotel guest")
    return " | ".join(piece for piece in pieces if piece)


def format_month(day_data: Mapping[str, DayData], month: str, language: str = "fr") -> str:
    """One line per active date, for a quick look at the month."""
    active = [day for day in day_data.values() if day.has_activity]
    if not active:
        return f"{month}: nothing scheduled."

    lines = [f"{month}:"]
    for day in active:
        counts = []
        if day.hotel_bookings:
            counts.append(f"{len(day.hotel_bookings)} stays")
        if day.breakfast_configs:
            counts.append(f"{day.breakfast_guests} breakfasts")
        if day.golf_items:
            counts.append(f"{len(day.golf_items)} golf")
        if day.event_items:
            counts.append(f"{len(day.event_items)} events")
        if day.reservations:
            counts.append(f"{len(day.reservations)} reservations")
        lines.append(f"{day.ymd} {weekday_name(parse_ymd(day.ymd), language)}: {', '.join(counts)}")
    return "\n".join(lines)


def _guests(count: int) -> str:
    return f"{count} guest" if count == 1 else f"{count} guests"


def _time_span(start: Optional[str], end: Optional[str]) -> str:
    if start and end:
        return f"{start}-{end}"
    return start or ""
