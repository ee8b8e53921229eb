from __future__ import annotations

import pytest

from fairway_planner.actions import Board
from fairway_planner.config import Settings
from fairway_planner.dates import from_ymd
from fairway_planner.store import MemoryStore

TODAY = from_ymd(2026, 6, 1)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def settings():
    return Settings(_env_file=None, timezone="Europe/Brussels", weekday_language="en")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def board(store, settings, today):
    return Board(store, settings, today=lambda: today)
