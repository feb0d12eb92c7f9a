"""Shared coercion helpers for loosely-typed upstream records.

Item store payloads carry numbers as strings, nulls or nothing at all.
These helpers turn such values into the finite floats, plain strings and
dates the rest of the pipeline works with.

Examples:
    >>> to_number("1,250.50")
    1250.5
    >>> to_number(None)
    0.0
    >>> truncate_date("2025-11-15T08:30:00")
    '2025-11-15'

"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any


def parse_date(s: str) -> date:
    """Parse a date string in YYYY-MM-DD format.

    Args:
        s: Date string in ISO format (YYYY-MM-DD).

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date string is not in YYYY-MM-DD format.

    Examples:
        >>> parse_date("2023-01-15")
        datetime.date(2023, 1, 15)

    """
    return datetime.strptime(s, "%Y-%m-%d").date()


def to_number(value: Any) -> float:
    """Coerce a raw field to a finite float, defaulting to 0.0.

    Accepts ints, floats and numeric strings (thousands separators and
    surrounding whitespace are tolerated). Booleans, NaN, infinities and
    anything unparseable become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def to_text(value: Any) -> str | None:
    """Return a stripped string for a raw key field, or None when blank."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        # 12.0 -> "12" so numeric ids match their string form
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


def truncate_date(value: Any) -> str:
    """Return the YYYY-MM-DD part of a raw date/datetime value.

    Values that do not start with an ISO date yield an empty string.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = to_text(value)
    if not text:
        return ""
    head = text[:10]
    try:
        parse_date(head)
    except ValueError:
        return ""
    return head
