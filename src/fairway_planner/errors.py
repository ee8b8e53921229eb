"""Exceptions raised inside the planning core.

The public :class:`~fairway_planner.actions.Board` converts every one of these
into an ``ActionResult`` with ``ok=False`` and the exception text as ``error``.
"""

from __future__ import annotations


class FairwayError(Exception):
    """Base class for all planning errors."""


class InvalidInput(FairwayError):
    """Malformed or missing form input, rejected before any store access."""


class InvalidDateFormat(InvalidInput):
    """A wall-date string did not match ``YYYY-MM-DD``."""

    def __init__(self, value: object):
        super().__init__(f"Invalid date format: {value!r} (expected YYYY-MM-DD)")
        self.value = value


class PastOrOutOfHorizonDate(FairwayError):
    """A date is in the past or beyond the allowed scheduling horizon."""


class NotFound(FairwayError):
    """A referenced row does not exist."""


class StoreError(FairwayError):
    """The backing store reported a failure; carries its message verbatim."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
