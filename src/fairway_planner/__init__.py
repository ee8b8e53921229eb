"""Scheduling board for golf-course hospitality."""

from importlib.metadata import PackageNotFoundError, version

from .actions import Board
from .aggregator import MonthCalendar
from .config import Settings
from .models import ActionResult, DayData
from .store import MemoryStore

try:
    __version__ = version("fairway-planner")
except PackageNotFoundError:  # pragma: no cover - fallback during local dev
    __version__ = "0.0.0"

__all__ = ["ActionResult", "Board", "DayData", "MemoryStore", "MonthCalendar", "Settings", "__version__"]
