"""Value coercion for filter evaluation and sorting.

Front matter values arrive as whatever YAML produced: strings, ints, floats,
bools, None, dates, lists and mappings. Filters compare them in one of two
explicit modes: as strings (``==``, ``!=``) or as numbers (``<``, ``>``,
``<=``, ``>=``).
"""

from __future__ import annotations

import json
import math
import re
from datetime import date, datetime, timezone
from typing import Any

_NUMERIC = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def coerce_str(value: Any) -> str:
    """String form used by equality comparisons.

    None is the empty string, booleans are ``true``/``false``, integral floats
    drop their fraction (``3.0`` is ``"3"``), lists are comma-joined and dates
    use ISO format.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(coerce_str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str, sort_keys=True)
    return str(value)


def coerce_number(value: Any) -> float:
    """Numeric form used by ordering comparisons.

    None and the empty string are 0, booleans are 1/0, numeric strings parse,
    dates become epoch milliseconds (UTC). Anything else is NaN, which makes
    every ordering comparison false.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if _NUMERIC.match(text):
            return float(text)
        return math.nan
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return moment.timestamp() * 1000
    if isinstance(value, date):
        moment = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return moment.timestamp() * 1000
    return math.nan


def is_truthy(value: Any) -> bool:
    """None, false, 0, NaN, "" and empty lists are falsy; everything else is truthy."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, (str, list, tuple)):
        return len(value) > 0
    return True


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compare_for_sort(a: Any, b: Any) -> int:
    """Three-way comparison for view ordering.

    Missing values sort first. Two numbers compare numerically; anything
    else compares by case-insensitive string form, falling back to the exact
    string form to keep the order total.
    """
    if a is None and b is None:
        return 0
    if a is None:
        return -1
    if b is None:
        return 1

    if _is_number(a) and _is_number(b):
        if a == b:
            return 0
        return -1 if a < b else 1

    left, right = coerce_str(a), coerce_str(b)
    left_key, right_key = (left.casefold(), left), (right.casefold(), right)
    if left_key == right_key:
        return 0
    return -1 if left_key < right_key else 1
