"""Command line entry point for the hospitality board."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import structlog

from .actions import Board
from .config import Settings
from .dates import format_ymd, month_date_range, parse_month, parse_ymd
from .errors import FairwayError
from .models import DayData
from .postgrest import PostgrestStore
from .recurrence import assign_legacy_group_ids
from .render import format_day, format_month


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


async def show_month(board: Board, month: Optional[str], include_past: bool) -> str:
    if month:
        year, month_number = parse_month(month)
    else:
        today = board.today()
        year, month_number = today.year, today.month
    day_data = await board.get_month_data(year, month_number, include_past=include_past)
    label = format_ymd(month_date_range(year, month_number).start)[:7]
    return format_month(day_data, label, board.settings.weekday_language)


async def show_day(board: Board, value: str) -> str:
    ymd = format_ymd(parse_ymd(value))
    day_data = await board.get_day_data(ymd, ymd)
    return format_day(day_data.get(ymd) or DayData(ymd=ymd), board.settings.weekday_language)


async def migrate_recurrence_groups(board: Board) -> str:
    assigned = await assign_legacy_group_ids(board.store)
    items = sum(len(ids) for ids in assigned.values())
    return f"Assigned {len(assigned)} group ids to {items} recurring items."


async def ensure_days(board: Board) -> str:
    result = await board.ensure_default_days()
    if not result.ok:
        raise FairwayError(result.error or "Could not ensure days")
    return f"Ensured {result.count} days from {format_ymd(board.today())}."


async def run(settings: Settings, args: argparse.Namespace) -> str:
    """Execute one command against the configured store."""
    async with PostgrestStore.from_settings(settings) as store:
        board = Board(store, settings)
        if args.command == "month":
            return await show_month(board, args.month, args.include_past)
        if args.command == "day":
            return await show_day(board, args.date)
        if args.command == "ensure-days":
            return await ensure_days(board)
        return await migrate_recurrence_groups(board)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Inspect the golf and hospitality board.")
    commands = parser.add_subparsers(dest="command", required=True)

    month = commands.add_parser("month", help="List the active dates of a month.")
    month.add_argument("month", nargs="?", help="Month as YYYY-MM; defaults to the current month.")
    month.add_argument("--include-past", action="store_true", help="Include dates before today.")

    day = commands.add_parser("day", help="Show everything scheduled on one date.")
    day.add_argument("date", help="Date as YYYY-MM-DD.")

    commands.add_parser("ensure-days", help="Create the Day rows of the rolling window starting today.")

    commands.add_parser(
        "migrate-recurrence-groups",
        help="Give recurring items saved without a group id a shared series id.",
    )
    return parser.parse_args(argv)


def cli(argv: Optional[List[str]] = None) -> None:
    """Console script entrypoint."""
    args = parse_args(argv)

    try:
        settings = Settings()
    except Exception as exc:  # pragma: no cover - startup validation
        configure_logging()
        LOGGER.exception("settings.error", error=str(exc))
        raise SystemExit(2) from exc

    configure_logging(logging.getLevelName(settings.log_level.upper()))

    try:
        output = asyncio.run(run(settings, args))
    except (FairwayError, ValueError) as exc:
        LOGGER.error("command.failed", command=args.command, error=str(exc))
        raise SystemExit(1) from exc
    print(output)


if __name__ == "__main__":
    cli()
