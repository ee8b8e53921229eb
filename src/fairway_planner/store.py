"""Relational store contract and an in-process implementation.

The board only needs a handful of table operations: filtered select, insert,
update, delete and upsert on a unique key. Rows are plain dictionaries keyed
by the store's camelCase column names. Every failure surfaces as
:class:`~fairway_planner.errors.StoreError`.
"""

from __future__ import annotations

import copy
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

import structlog

from .errors import StoreError
from .models import DAY

LOGGER = structlog.get_logger(__name__)

Row = Dict[str, Any]
Filter = Tuple[str, str, Any]

OPERATORS = frozenset({"eq", "neq", "in", "lt", "lte", "gt", "gte", "is", "ilike"})


def eq(column: str, value: Any) -> Filter:
    return (column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return (column, "neq", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return (column, "in", list(values))


def lt(column: str, value: Any) -> Filter:
    return (column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return (column, "lte", value)


def gt(column: str, value: Any) -> Filter:
    return (column, "gt", value)


def gte(column: str, value: Any) -> Filter:
    return (column, "gte", value)


def is_null(column: str) -> Filter:
    return (column, "is", None)


def ilike(column: str, pattern: str) -> Filter:
    """Case-insensitive SQL ``LIKE``: ``%`` spans any run, ``_`` one character."""
    return (column, "ilike", pattern)


def escape_like(text: str) -> str:
    """Quote ``LIKE`` wildcards so ``text`` only matches itself."""
    return re.sub(r"([\\%_])", r"\\\1", text)


def _like_regex(pattern: str) -> "re.Pattern[str]":
    parts = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


class Store(Protocol):
    """Operations the board performs against its relational backend."""

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
    ) -> List[Row]:
        ...

    async def insert(self, table: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        ...

    async def update(self, table: str, values: Row, filters: Sequence[Filter]) -> List[Row]:
        ...

    async def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        ...

    async def upsert(self, table: str, row: Row, *, on_conflict: str) -> Row:
        ...

    def transaction(self) -> Any:
        """Async context manager grouping writes into one unit of work."""
        ...


def matches(row: Row, filters: Sequence[Filter]) -> bool:
    """Evaluate store filters against a row held in memory."""
    for column, op, expected in filters:
        if op not in OPERATORS:
            raise StoreError(f"Unsupported filter operator: {op}")
        actual = row.get(column)
        if op == "eq":
            if actual != expected:
                return False
        elif op == "neq":
            if actual == expected:
                return False
        elif op == "in":
            if actual not in expected:
                return False
        elif op == "is":
            if actual is not expected:
                return False
        elif op == "ilike":
            if not isinstance(actual, str) or not _like_regex(expected).fullmatch(actual):
                return False
        else:
            if actual is None:
                return False
            if op == "lt" and not actual < expected:
                return False
            if op == "lte" and not actual <= expected:
                return False
            if op == "gt" and not actual > expected:
                return False
            if op == "gte" and not actual >= expected:
                return False
    return True


@dataclass
class InjectedFailure:
    """A scripted failure for one table operation, used to exercise error paths."""

    table: str
    operation: str
    message: str
    match: Optional[Callable[[Row], bool]] = None
    remaining: Optional[int] = None


class MemoryStore:
    """Dictionary-backed store with auto-increment ids and unique-key upserts."""

    def __init__(self, unique_keys: Optional[Dict[str, Tuple[str, ...]]] = None):
        self._tables: Dict[str, List[Row]] = {}
        self._next_ids: Dict[str, int] = {}
        self._unique_keys = unique_keys if unique_keys is not None else {DAY: ("dateISO",)}
        self._failures: List[InjectedFailure] = []
        self._transaction_depth = 0

    def inject_failure(
        self,
        table: str,
        operation: str,
        message: str = "simulated store failure",
        *,
        match: Optional[Callable[[Row], bool]] = None,
        times: Optional[int] = None,
    ) -> None:
        """Make the next matching ``operation`` on ``table`` raise ``StoreError``."""
        self._failures.append(InjectedFailure(table, operation, message, match, times))

    def rows(self, table: str) -> List[Row]:
        """Snapshot of every row in a table, for inspection."""
        return copy.deepcopy(self._tables.get(table, []))

    def seed(self, table: str, rows: Iterable[Row]) -> List[Row]:
        """Insert rows as-is (keeping explicit ids), bypassing failure injection."""
        stored = []
        for row in rows:
            stored.append(self._store_row(table, dict(row)))
        return copy.deepcopy(stored)

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
    ) -> List[Row]:
        self._maybe_fail(table, "select")
        found = [row for row in self._tables.get(table, []) if matches(row, filters)]
        if order_by:
            found.sort(key=lambda row: (row.get(order_by) is not None, row.get(order_by)))
        return copy.deepcopy(found)

    async def insert(self, table: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        batch = [rows] if isinstance(rows, dict) else list(rows)
        for row in batch:
            self._maybe_fail(table, "insert", row)
        inserted = [self._store_row(table, dict(row)) for row in batch]
        return copy.deepcopy(inserted)

    async def update(self, table: str, values: Row, filters: Sequence[Filter]) -> List[Row]:
        self._maybe_fail(table, "update")
        updated = []
        for row in self._tables.get(table, []):
            if matches(row, filters):
                row.update(values)
                updated.append(row)
        return copy.deepcopy(updated)

    async def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        self._maybe_fail(table, "delete")
        kept: List[Row] = []
        removed: List[Row] = []
        for row in self._tables.get(table, []):
            (removed if matches(row, filters) else kept).append(row)
        self._tables[table] = kept
        return copy.deepcopy(removed)

    async def upsert(self, table: str, row: Row, *, on_conflict: str) -> Row:
        self._maybe_fail(table, "upsert", row)
        columns = tuple(column.strip() for column in on_conflict.split(","))
        for existing in self._tables.get(table, []):
            if all(existing.get(column) == row.get(column) for column in columns):
                existing.update(row)
                return copy.deepcopy(existing)
        return copy.deepcopy(self._store_row(table, dict(row)))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Roll every table back to its state on entry if the block raises."""
        if self._transaction_depth:
            self._transaction_depth += 1
            try:
                yield
            finally:
                self._transaction_depth -= 1
            return

        snapshot = (copy.deepcopy(self._tables), dict(self._next_ids))
        self._transaction_depth = 1
        try:
            yield
        except BaseException:
            self._tables, self._next_ids = snapshot
            LOGGER.info("store.transaction.rolled_back")
            raise
        finally:
            self._transaction_depth = 0

    def _store_row(self, table: str, row: Row) -> Row:
        table_rows = self._tables.setdefault(table, [])
        unique = self._unique_keys.get(table)
        if unique and any(all(existing.get(c) == row.get(c) for c in unique) for existing in table_rows):
            raise StoreError(
                f'duplicate key value violates unique constraint "{table}_{"_".join(unique)}_key"'
            )
        if row.get("id") is None:
            row["id"] = self._next_ids.get(table, 1)
        self._next_ids[table] = max(self._next_ids.get(table, 1), int(row["id"]) + 1)
        table_rows.append(row)
        return row

    def _maybe_fail(self, table: str, operation: str, row: Optional[Row] = None) -> None:
        for failure in list(self._failures):
            if failure.table != table or failure.operation != operation:
                continue
            if failure.match is not None and (row is None or not failure.match(row)):
                continue
            if failure.remaining is not None:
                failure.remaining -= 1
                if failure.remaining <= 0:
                    self._failures.remove(failure)
            raise StoreError(failure.message)
