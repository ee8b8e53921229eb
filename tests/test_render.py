from __future__ import annotations

from fairway_planner.main import ensure_days, parse_args, show_day, show_month
from fairway_planner.models import DayData
from fairway_planner.render import format_day, format_month


def test_empty_day():
    assert format_day(DayData(ymd="2026-06-10"), "en") == "Wednesday (2026-06-10)\nNothing scheduled."


def test_month_lists_active_dates_only():
    day_data = {
        "2026-06-10": DayData(ymd="2026-06-10"),
        "2026-06-11": DayData.model_validate(
            {
                "ymd": "2026-06-11",
                "golf_items": [{"id": 1, "dayId": 1, "type": "golf", "title": "Scramble"}],
            }
        ),
    }
    assert format_month(day_data, "2026-06", "en") == "2026-06:\n2026-06-11 Thursday: 1 golf"
    assert format_month({}, "2026-07") == "2026-07: nothing scheduled."


async def test_day_command(board):
    await board.create_hotel_booking(
        {
            "guestName": "Dupont",
            "guestCount": "2",
            "checkInDate": "2026-06-10",
            "checkOutDate": "2026-06-12",
            "breakfast_0_date": "2026-06-11",
            "breakfast_0_tableBreakdown": "2",
        }
    )
    await board.create_golf_item({"date": "2026-06-11", "title": "Scramble", "startTime": "09:00", "size": "4"})

    text = await show_day(board, "2026-06-11")

    assert text.startswith("Thursday (2026-06-11)")
    assert "- Dupont | 2 guests | 2026-06-10 -> 2026-06-12" in text
    assert "Breakfast (2 guests):" in text
    assert "- 09:00 | Scramble | 4 guests" in text


async def test_month_command(board):
    await board.create_event_item({"date": "2026-06-10", "title": "Quiz"})
    assert await show_month(board, "2026-06", False) == "2026-06:\n2026-06-10 Wednesday: 1 events"


def test_parse_args():
    args = parse_args(["month", "2026-06", "--include-past"])
    assert (args.command, args.month, args.include_past) == ("month", "2026-06", True)
    assert parse_args(["day", "2026-06-10"]).date == "2026-06-10"
    assert parse_args(["migrate-recurrence-groups"]).command == "migrate-recurrence-groups"
    assert parse_args(["ensure-days"]).command == "ensure-days"


async def test_ensure_days_command(board, store):
    assert await ensure_days(board) == "Ensured 14 days from 2026-06-01."
    assert len(store.rows("Day")) == 14
