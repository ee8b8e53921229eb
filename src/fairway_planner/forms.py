"""Helpers for reading the key/value bags submitted by the page layer.

Every helper treats a missing key and an empty string alike. Malformed values
raise :class:`~fairway_planner.errors.InvalidInput` before the store is touched.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Mapping, Optional

from .dates import parse_ymd
from .errors import InvalidInput

Form = Mapping[str, object]


def get_str(form: Form, key: str) -> Optional[str]:
    value = form.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def get_int(form: Form, key: str) -> Optional[int]:
    """Optional integer field; ``None`` when absent."""
    text = get_str(form, key)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError as exc:
        raise InvalidInput(f"Invalid number for {key}: {text!r}") from exc
    if not math.isfinite(number) or number != int(number):
        raise InvalidInput(f"Invalid number for {key}: {text!r}")
    return int(number)


def require_id(form: Form, key: str = "id", *, label: str = "ID") -> int:
    """Mandatory positive row id."""
    try:
        value = get_int(form, key)
    except InvalidInput:
        value = None
    if value is None or value <= 0:
        raise InvalidInput(f"Invalid {label}")
    return value


def optional_id(form: Form, key: str) -> Optional[int]:
    """Numeric reference that is silently dropped when it is not a number."""
    try:
        return get_int(form, key)
    except InvalidInput:
        return None


def require_date(form: Form, key: str, *, message: str) -> datetime:
    text = get_str(form, key)
    if text is None:
        raise InvalidInput(message)
    return parse_ymd(text)


def is_checked(form: Form, key: str) -> bool:
    """HTML checkbox semantics: only ``"on"`` is checked."""
    return get_str(form, key) == "on"


def is_true(form: Form, key: str) -> bool:
    """Explicit boolean flag sent as the string ``"true"``."""
    return (get_str(form, key) or "").lower() == "true"
