from __future__ import annotations

import itertools

import pytest

from fairway_planner.dates import add_days, format_ymd, from_ymd, parse_ymd
from fairway_planner.days import ensure_day
from fairway_planner.errors import InvalidInput, StoreError
from fairway_planner.models import DAY, PROGRAM_ITEM, ProgramItem, RecurrenceFrequency
from fairway_planner.recurrence import (
    assign_legacy_group_ids,
    count_other_occurrences,
    create_series,
    delete_series,
    expand_occurrences,
    find_occurrences,
    next_occurrence,
    occurrence_dates,
    parse_frequency,
    parse_item_type,
    plan_series,
)


def ymds(values):
    return [format_ymd(value) for value in values]


async def seed_item(store, ymd, **fields):
    day = await ensure_day(store, parse_ymd(ymd))
    row = {"dayId": day.id, "type": "golf", "title": "Scramble", **fields}
    return ProgramItem.model_validate((await store.insert(PROGRAM_ITEM, row))[0])


class TestExpansion:
    def test_monthly_clamps_to_month_end_and_steps_from_previous(self):
        dates = expand_occurrences(from_ymd(2024, 1, 31), "monthly", from_ymd(2024, 4, 30))
        assert ymds(dates) == ["2024-01-31", "2024-02-29", "2024-03-29", "2024-04-29"]

    def test_yearly_from_leap_day(self):
        dates = expand_occurrences(from_ymd(2024, 2, 29), "yearly", from_ymd(2026, 3, 1))
        assert ymds(dates) == ["2024-02-29", "2025-02-28", "2026-02-28"]

    def test_weekly_over_one_year_has_53_occurrences(self):
        plan = plan_series(from_ymd(2026, 6, 1), "weekly", window_days=365)
        assert len(plan.dates) == 53
        assert plan.ymds[-1] == "2027-05-31"

    def test_weekly_through_2024_has_53_occurrences(self):
        dates = expand_occurrences(from_ymd(2024, 1, 1), "weekly", from_ymd(2024, 12, 31))
        assert len(dates) == 53
        assert format_ymd(dates[-1]) == "2024-12-30"

    def test_biweekly(self):
        plan = plan_series(from_ymd(2026, 6, 1), RecurrenceFrequency.BIWEEKLY, window_days=365)
        assert len(plan.dates) == 27
        assert plan.ymds[1] == "2026-06-15"

    def test_horizon_equal_to_start_yields_start_only(self):
        assert ymds(expand_occurrences(from_ymd(2026, 6, 1), "yearly", from_ymd(2026, 6, 1))) == ["2026-06-01"]

    def test_horizon_before_start_is_rejected(self):
        with pytest.raises(InvalidInput):
            expand_occurrences(from_ymd(2026, 6, 1), "weekly", from_ymd(2026, 5, 31))

    def test_unknown_frequency_is_rejected(self):
        with pytest.raises(InvalidInput):
            parse_frequency("daily")
        with pytest.raises(InvalidInput):
            plan_series(from_ymd(2026, 6, 1), "fortnightly")

    @pytest.mark.parametrize("frequency", list(RecurrenceFrequency))
    @pytest.mark.parametrize("start", ["2026-01-31", "2026-06-01", "2028-02-29", "2026-12-31"])
    def test_occurrences_are_increasing_and_stop_at_horizon(self, frequency, start):
        first = parse_ymd(start)
        horizon = add_days(first, 400)
        dates = expand_occurrences(first, frequency, horizon)
        assert dates[0] == first
        assert all(earlier < later for earlier, later in zip(dates, dates[1:]))
        assert dates[-1] <= horizon
        assert next_occurrence(dates[-1], frequency) > horizon

    def test_unknown_item_type_is_rejected(self):
        assert parse_item_type("event").value == "event"
        with pytest.raises(InvalidInput, match="dinner"):
            parse_item_type("dinner")
        with pytest.raises(InvalidInput):
            parse_item_type(None)

    def test_plan_series_uses_one_group_id(self):
        plan = plan_series(from_ymd(2026, 6, 1), "monthly", group_id="series-1")
        assert plan.group_id == "series-1"
        assert plan.frequency is RecurrenceFrequency.MONTHLY


class TestCreateSeries:
    async def test_creates_one_item_per_occurrence(self, store):
        plan = plan_series(from_ymd(2026, 6, 1), "weekly", window_days=365, group_id="g-1")
        creation = await create_series(store, {"type": "golf", "title": "Weekly scramble"}, plan, language="en")

        assert creation.count == 53
        assert creation.affected_dates == plan.ymds
        rows = store.rows(PROGRAM_ITEM)
        assert {row["recurrenceGroupId"] for row in rows} == {"g-1"}
        assert all(row["isRecurring"] and row["recurrenceFrequency"] == "weekly" for row in rows)
        assert len(store.rows(DAY)) == 53

    async def test_failed_day_upsert_skips_that_occurrence(self, store):
        store.inject_failure(DAY, "upsert", match=lambda row: row["dateISO"].startswith("2026-06-15"))
        plan = plan_series(from_ymd(2026, 6, 1), "weekly", window_days=365)

        creation = await create_series(store, {"type": "golf", "title": "Weekly scramble"}, plan)

        assert creation.count == 52
        assert creation.skipped_dates == ["2026-06-15"]
        assert "2026-06-15" not in creation.affected_dates


class TestLocator:
    async def test_group_id_keeps_same_titled_series_apart(self, store):
        for group_id in ("a", "b"):
            plan = plan_series(from_ymd(2026, 6, 1), "weekly", window_days=28, group_id=group_id)
            await create_series(store, {"type": "golf", "title": "Scramble"}, plan)

        first = ProgramItem.model_validate(store.rows(PROGRAM_ITEM)[0])
        match = await find_occurrences(store, first)

        assert match.group_id == "a"
        assert len(match.items) == 5
        assert match.other_count == 4

    async def test_group_id_search_is_scoped_to_item_type(self, store):
        plan = plan_series(from_ymd(2026, 6, 1), "weekly", window_days=14, group_id="shared")
        await create_series(store, {"type": "golf", "title": "Scramble"}, plan)
        await create_series(store, {"type": "event", "title": "Scramble"}, plan)

        golf = ProgramItem.model_validate(store.rows(PROGRAM_ITEM)[0])
        assert len((await find_occurrences(store, golf)).items) == 3

    async def test_legacy_items_match_on_type_frequency_and_title(self, store):
        legacy = {"isRecurring": True, "recurrenceFrequency": "weekly"}
        first = await seed_item(store, "2026-06-01", **legacy)
        await seed_item(store, "2026-06-08", **legacy)
        await seed_item(store, "2026-06-15", **legacy, recurrenceGroupId="modern")
        await seed_item(store, "2026-06-15", isRecurring=True, recurrenceFrequency="monthly")
        await seed_item(store, "2026-06-22", **{**legacy, "title": "Other"})

        match = await find_occurrences(store, first)

        assert match.group_id is None
        assert match.ids == [first.id, first.id + 1]
        assert await occurrence_dates(store, match.items) == ["2026-06-01", "2026-06-08"]

    async def test_untitled_legacy_item_only_matches_untitled_ones(self, store):
        legacy = {"isRecurring": True, "recurrenceFrequency": "weekly"}
        untitled = await seed_item(store, "2026-06-01", **legacy, title=None)
        await seed_item(store, "2026-06-08", **legacy, title=None)
        await seed_item(store, "2026-06-15", **legacy)

        match = await find_occurrences(store, untitled)

        assert match.ids == [untitled.id, untitled.id + 1]
        assigned = await assign_legacy_group_ids(store)
        assert sorted(assigned.values()) == [[untitled.id, untitled.id + 1], [untitled.id + 2]]

    async def test_unreadable_sibling_is_a_store_error(self, store):
        first = await seed_item(store, "2026-06-01", isRecurring=True, recurrenceGroupId="g")
        await store.insert(
            PROGRAM_ITEM,
            {"dayId": first.day_id, "type": "golf", "isRecurring": True, "recurrenceGroupId": "g", "recurrenceFrequency": "daily"},
        )

        with pytest.raises(StoreError, match="Unreadable ProgramItem row 2"):
            await find_occurrences(store, first)

    async def test_non_recurring_item_has_no_siblings(self, store):
        item = await seed_item(store, "2026-06-01")
        assert (await find_occurrences(store, item)).items == []
        assert await count_other_occurrences(store, item) == 0

    async def test_delete_series_removes_exactly_the_series(self, store):
        plan = plan_series(from_ymd(2026, 6, 1), "weekly", window_days=365)
        await create_series(store, {"type": "golf", "title": "Scramble"}, plan)
        unrelated = await seed_item(store, "2026-06-01", title="Lesson")

        first = ProgramItem.model_validate(store.rows(PROGRAM_ITEM)[0])
        deleted = await delete_series(store, await find_occurrences(store, first))

        assert len(deleted) == 53
        assert [row["id"] for row in store.rows(PROGRAM_ITEM)] == [unrelated.id]


class TestLegacyMigration:
    async def test_assigns_one_group_per_heuristic_series(self, store):
        await seed_item(store, "2026-06-01", isRecurring=True, recurrenceFrequency="weekly")
        await seed_item(store, "2026-06-08", isRecurring=True, recurrenceFrequency="weekly")
        await seed_item(store, "2026-06-03", type="event", title="Quiz", isRecurring=True, recurrenceFrequency="monthly")
        await seed_item(store, "2026-06-04", title="Single")

        counter = itertools.count(1)
        assigned = await assign_legacy_group_ids(store, id_factory=lambda: f"g{next(counter)}")

        assert assigned == {"g1": [1, 2], "g2": [3]}
        groups = {row["id"]: row.get("recurrenceGroupId") for row in store.rows(PROGRAM_ITEM)}
        assert groups == {1: "g1", 2: "g1", 3: "g2", 4: None}

        first = ProgramItem.model_validate(store.rows(PROGRAM_ITEM)[0])
        assert (await find_occurrences(store, first)).group_id == "g1"

    async def test_second_run_is_a_no_op(self, store):
        await seed_item(store, "2026-06-01", isRecurring=True, recurrenceFrequency="weekly")
        await assign_legacy_group_ids(store)
        assert await assign_legacy_group_ids(store) == {}
