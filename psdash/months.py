from __future__ import annotations

import math
import re
from typing import Optional, Tuple

from psdash.config import MONTH_NAMES

_MONTH_STR_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})\s*$")


def to_key(year: int, month: int) -> int:
    return int(year) * 100 + int(month)


def from_key(key: int) -> Tuple[int, int]:
    key = int(key)
    return key // 100, key % 100


def clamp_key(key: int, lo: int, hi: int) -> int:
    if key < lo:
        return lo
    if key > hi:
        return hi
    return key


def key_from_str(value: Optional[str]) -> Optional[int]:
    """Parse "YYYY-MM" -> 202403. Returns None for blanks or malformed strings."""
    if not value:
        return None
    match = _MONTH_STR_RE.match(str(value))
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not year or not 1 <= month <= 12:
        return None
    return to_key(year, month)


def str_from_key(key: int) -> str:
    year, month = from_key(key)
    return f"{year}-{month:02d}"


def month_label(year: int, month: int) -> str:
    return f"{MONTH_NAMES[int(month) - 1]} {int(year)}"


def shift_key(key: int, delta: int) -> int:
    year, month = from_key(key)
    total = year * 12 + (month - 1) + int(delta)
    return to_key(total // 12, total % 12 + 1)


def shift_months(value: str, delta: int) -> str:
    """Move a "YYYY-MM" string by `delta` calendar months (negative allowed)."""
    key = key_from_str(value)
    if key is None:
        raise ValueError(f"Invalid month string: {value!r}")
    return str_from_key(shift_key(key, delta))


def _as_month_number(value: object) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number) or not number.is_integer():
        return None
    month = int(number)
    return month if 1 <= month <= 12 else None


def parse_month_token(token: object) -> Optional[int]:
    """Month index 1..12 from "3", 3, "Mar", "march" or "Mar-24". None when unparseable.

    Text tokens match on their first three letters against the month
    abbreviations, so trailing day or year text is ignored.
    """
    if token is None:
        return None
    if isinstance(token, float) and math.isnan(token):
        return None
    month = _as_month_number(token)
    if month is not None:
        return month
    prefix = str(token).strip()[:3].lower()
    if len(prefix) < 3:
        return None
    for idx, name in enumerate(MONTH_NAMES):
        if name.lower() == prefix:
            return idx + 1
    return None
