from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from fairway_planner.dates import (
    add_days,
    date_range,
    format_ymd,
    from_ymd,
    get_today_in_operating_timezone,
    is_date_within_horizon,
    is_past_date,
    month_date_range,
    parse_month,
    parse_ymd,
    to_instant,
    weekday_name,
)
from fairway_planner.errors import InvalidDateFormat, InvalidInput

UTC = timezone.utc


class TestParsing:
    def test_parse_ymd_is_utc_midnight(self):
        assert parse_ymd("2026-06-10") == datetime(2026, 6, 10, tzinfo=UTC)

    def test_format_ymd_reads_utc_fields(self):
        assert format_ymd(parse_ymd("2026-12-31")) == "2026-12-31"
        assert format_ymd(date(2026, 1, 5)) == "2026-01-05"

    @pytest.mark.parametrize("value", ["2026-6-10", "2026-02-30", "10/06/2026", "", "2026-06-10T00:00"])
    def test_parse_ymd_rejects_malformed_dates(self, value):
        with pytest.raises(InvalidDateFormat):
            parse_ymd(value)

    def test_parse_month(self):
        assert parse_month("2026-02") == (2026, 2)
        with pytest.raises(InvalidInput):
            parse_month("2026-13")
        with pytest.raises(InvalidInput):
            parse_month("june")


class TestToday:
    def test_late_evening_utc_is_next_day_in_brussels(self):
        now = datetime(2026, 6, 9, 22, 30, tzinfo=UTC)
        assert get_today_in_operating_timezone("Europe/Brussels", now=now) == from_ymd(2026, 6, 10)

    def test_other_timezone(self):
        now = datetime(2026, 6, 9, 13, 0, tzinfo=UTC)
        assert get_today_in_operating_timezone("Pacific/Auckland", now=now) == from_ymd(2026, 6, 10)
        assert get_today_in_operating_timezone("America/New_York", now=now) == from_ymd(2026, 6, 9)

    def test_unknown_timezone_falls_back_to_utc(self):
        now = datetime(2026, 6, 9, 23, 30, tzinfo=UTC)
        assert get_today_in_operating_timezone("Not/AZone", now=now) == from_ymd(2026, 6, 9)

    def test_past_dates(self):
        today = from_ymd(2026, 6, 1)
        assert is_past_date(from_ymd(2026, 5, 31), today=today)
        assert not is_past_date(today, today=today)
        assert not is_past_date(from_ymd(2026, 6, 2), today=today)

    def test_horizon_is_inclusive_and_upper_bound_only(self):
        today = from_ymd(2026, 6, 1)
        assert is_date_within_horizon(add_days(today, 365), horizon_days=365, today=today)
        assert not is_date_within_horizon(add_days(today, 366), horizon_days=365, today=today)
        assert is_date_within_horizon(from_ymd(2020, 1, 1), horizon_days=365, today=today)


class TestArithmetic:
    def test_add_days_across_dst_change(self):
        assert add_days(from_ymd(2026, 3, 28), 1) == from_ymd(2026, 3, 29)
        assert add_days(from_ymd(2026, 3, 29), 1) == from_ymd(2026, 3, 30)
        assert add_days(from_ymd(2026, 10, 25), -1) == from_ymd(2026, 10, 24)

    def test_date_range_is_inclusive(self):
        days = date_range(from_ymd(2026, 10, 24), from_ymd(2026, 10, 27))
        assert [format_ymd(day) for day in days] == [
            "2026-10-24",
            "2026-10-25",
            "2026-10-26",
            "2026-10-27",
        ]
        assert date_range(from_ymd(2026, 1, 2), from_ymd(2026, 1, 1)) == []

    def test_to_instant_normalises_local_datetimes(self):
        local = datetime(2026, 6, 10, 18, 45, tzinfo=UTC)
        assert to_instant(local) == from_ymd(2026, 6, 10)

    def test_month_date_range_leap_february(self):
        february = month_date_range(2028, 2)
        assert february.start_ymd == "2028-02-01"
        assert february.end_ymd == "2028-02-29"
        assert len(february.dates) == 29
        assert month_date_range(2026, 12).end_ymd == "2026-12-31"

    def test_weekday_names(self):
        assert weekday_name(from_ymd(2026, 6, 1), "en") == "Monday"
        assert weekday_name(from_ymd(2026, 6, 1), "fr") == "lundi"
        assert weekday_name(from_ymd(2026, 6, 7)) == "dimanche"
