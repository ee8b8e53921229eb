from __future__ import annotations

from fairway_planner.aggregator import MonthCalendar, build_day_data, date_has_activity, fetch_day_data
from fairway_planner.dates import from_ymd, parse_ymd
from fairway_planner.days import ensure_day
from fairway_planner.models import (
    BREAKFAST_CONFIGURATION,
    HOTEL_BOOKING,
    POINT_OF_CONTACT,
    PROGRAM_ITEM,
    RESERVATION,
    VENUE_TYPE,
)

JUNE_START = from_ymd(2026, 6, 1)
JUNE_END = from_ymd(2026, 6, 30)


def booking(booking_id, check_in, check_out, **fields):
    return {"id": booking_id, "checkInDate": check_in, "checkOutDate": check_out, "guestName": "Guest", **fields}


class TestBuildDayData:
    def test_booking_only_dates_have_activity(self):
        day_data = build_day_data(
            days=[],
            hotel_bookings=[booking(1, "2026-06-10", "2026-06-13")],
            window_start=JUNE_START,
            window_end=JUNE_END,
        )

        assert list(day_data) == ["2026-06-10", "2026-06-11", "2026-06-12"]
        assert date_has_activity(day_data, "2026-06-10")
        assert date_has_activity(day_data, parse_ymd("2026-06-12"))
        assert not date_has_activity(day_data, "2026-06-13")

    def test_stay_is_clipped_to_the_window(self):
        day_data = build_day_data(
            days=[],
            hotel_bookings=[booking(1, "2026-05-28", "2026-06-03")],
            window_start=JUNE_START,
            window_end=JUNE_END,
        )
        assert list(day_data) == ["2026-06-01", "2026-06-02"]

    def test_rows_are_bucketed_by_day(self):
        days = [
            {"id": 1, "dateISO": "2026-06-10T00:00:00+00:00", "weekday": "Wednesday"},
            {"id": 2, "dateISO": "2026-07-01T00:00:00+00:00", "weekday": "Wednesday"},
            {"id": 3, "dateISO": "2026-06-11T00:00:00+00:00", "weekday": "Thursday"},
        ]
        day_data = build_day_data(
            days=days,
            program_items=[
                {"id": 1, "dayId": 1, "type": "golf", "title": "Scramble"},
                {"id": 2, "dayId": 1, "type": "event", "title": "Dinner"},
                {"id": 3, "dayId": 2, "type": "golf", "title": "Outside window"},
            ],
            reservations=[{"id": 1, "dayId": 1, "guestName": "Martin", "guestCount": 2}],
            window_start=JUNE_START,
            window_end=JUNE_END,
        )

        assert list(day_data) == ["2026-06-10", "2026-06-11"]
        june_10 = day_data["2026-06-10"]
        assert [item.title for item in june_10.golf_items] == ["Scramble"]
        assert [item.title for item in june_10.event_items] == ["Dinner"]
        assert [r.guest_name for r in june_10.reservations] == ["Martin"]
        assert not day_data["2026-06-11"].has_activity

    def test_breakfast_opens_its_own_bucket(self):
        day_data = build_day_data(
            days=[],
            hotel_bookings=[booking(1, "2026-06-10", "2026-06-13")],
            breakfast_configs=[
                {"id": 1, "hotelBookingId": 1, "breakfastDate": "2026-06-13", "tableBreakdown": [3, 2, 1]}
            ],
            window_start=JUNE_START,
            window_end=JUNE_END,
        )

        morning = day_data["2026-06-13"]
        assert morning.hotel_bookings == []
        assert morning.breakfast_guests == 6
        assert date_has_activity(day_data, "2026-06-13")

    def test_rebuilding_from_the_same_rows_is_identical(self):
        kwargs = dict(
            days=[{"id": 1, "dateISO": "2026-06-10T00:00:00+00:00"}],
            program_items=[{"id": 1, "dayId": 1, "type": "golf"}],
            hotel_bookings=[booking(2, "2026-06-09", "2026-06-12"), booking(1, "2026-06-10", "2026-06-11")],
            window_start=JUNE_START,
            window_end=JUNE_END,
        )
        first = build_day_data(**kwargs)
        assert build_day_data(**kwargs) == first
        assert [b.id for b in first["2026-06-10"].hotel_bookings] == [2, 1]


class TestFetchDayData:
    async def test_reads_every_row_kind_and_attaches_references(self, store):
        venue = (await store.insert(VENUE_TYPE, {"name": "Terrace", "code": "terrace"}))[0]
        poc = (await store.insert(POINT_OF_CONTACT, {"name": "Claire"}))[0]
        day = await ensure_day(store, parse_ymd("2026-06-11"))
        await store.insert(
            PROGRAM_ITEM,
            {"dayId": day.id, "type": "event", "title": "Wine tasting", "venueTypeId": venue["id"], "pocId": poc["id"]},
        )
        await store.insert(RESERVATION, {"dayId": day.id, "guestName": "Martin", "guestCount": 2})
        await store.insert(
            HOTEL_BOOKING, {"guestName": "Dupont", "checkInDate": "2026-06-10", "checkOutDate": "2026-06-13"}
        )
        await store.insert(
            BREAKFAST_CONFIGURATION, {"hotelBookingId": 1, "breakfastDate": "2026-06-11", "tableBreakdown": [2]}
        )

        day_data = await fetch_day_data(store, parse_ymd("2026-06-11"), parse_ymd("2026-06-11"))

        assert list(day_data) == ["2026-06-11"]
        june_11 = day_data["2026-06-11"]
        event = june_11.event_items[0]
        assert event.venue.name == "Terrace"
        assert event.poc.name == "Claire"
        assert len(june_11.reservations) == 1
        assert [b.guest_name for b in june_11.hotel_bookings] == ["Dupont"]
        assert june_11.breakfast_guests == 2

    async def test_booking_boundaries(self, store):
        await store.insert(
            HOTEL_BOOKING, {"guestName": "Dupont", "checkInDate": "2026-06-10", "checkOutDate": "2026-06-13"}
        )
        assert "2026-06-10" in await fetch_day_data(store, parse_ymd("2026-06-10"), parse_ymd("2026-06-10"))
        assert "2026-06-12" in await fetch_day_data(store, parse_ymd("2026-06-12"), parse_ymd("2026-06-12"))
        assert await fetch_day_data(store, parse_ymd("2026-06-13"), parse_ymd("2026-06-20")) == {}


class TestMonthCalendar:
    def make_calendar(self, today, **kwargs):
        calls = []

        async def loader(start, end):
            calls.append((start, end))
            return {}

        return MonthCalendar(loader, today=lambda: today, **kwargs), calls

    async def test_cached_until_a_mutation_is_reported(self, today):
        calendar, calls = self.make_calendar(today)

        await calendar.day_data()
        await calendar.day_data()
        assert calendar.builds == 1

        calendar.report_mutation(["2026-06-10"])
        assert calendar.is_stale
        await calendar.day_data()
        assert calendar.builds == 2
        assert len(calls) == 2

    async def test_switching_month_refetches(self, today):
        calendar, calls = self.make_calendar(today)
        await calendar.day_data()

        calendar.show(2026, 6)
        assert not calendar.is_stale
        calendar.show(2026, 8)
        assert calendar.is_stale
        await calendar.day_data()
        assert calls[-1] == (from_ymd(2026, 8, 1), from_ymd(2026, 8, 31))

    async def test_window_starts_today_unless_past_is_included(self):
        mid_june = from_ymd(2026, 6, 15)
        calendar, _ = self.make_calendar(mid_june)
        assert calendar.window() == (mid_june, JUNE_END)

        calendar, _ = self.make_calendar(mid_june, include_past=True)
        assert calendar.window() == (JUNE_START, JUNE_END)

    async def test_past_month_is_empty_without_loading(self, today):
        calendar, calls = self.make_calendar(today)
        calendar.show(2026, 5)
        assert await calendar.day_data() == {}
        assert calls == []
