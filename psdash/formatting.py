from __future__ import annotations

import math
from typing import Optional


def _finite(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def format_abbrev(value: object) -> str:
    """1_234_567 -> "1.23M"; values under 1000 keep thousands separators."""
    n = _finite(value)
    if n is None:
        return ""
    a = abs(n)

    def fmt(v: float, suffix: str) -> str:
        digits = 0 if abs(v) >= 100 else 1 if abs(v) >= 10 else 2
        return f"{v:.{digits}f}{suffix}"

    if a >= 1_000_000_000:
        return fmt(n / 1_000_000_000, "B")
    if a >= 1_000_000:
        return fmt(n / 1_000_000, "M")
    if a >= 1_000:
        return fmt(n / 1_000, "K")
    return f"{n:,.0f}" if n.is_integer() else f"{n:,.3f}".rstrip("0").rstrip(".")


def format_value(value: object, value_type: Optional[str] = None) -> str:
    n = _finite(value)
    if n is None:
        return ""
    if value_type == "currency":
        if abs(n) >= 1000:
            text = format_abbrev(abs(n))
            return f"-${text}" if n < 0 else f"${text}"
        return f"-${abs(n):,.0f}" if n < 0 else f"${n:,.0f}"
    return format_abbrev(n)


def format_pct(value: object) -> str:
    n = _finite(value)
    if n is None:
        return ""
    return f"{n * 100:.{2 if abs(n) < 0.1 else 1}f}%"


def format_file_size(size: object) -> Optional[str]:
    n = _finite(size)
    if n is None:
        return None
    units = ["B", "KB", "MB", "GB", "TB"]
    idx = 0
    while n >= 1024 and idx < len(units) - 1:
        n /= 1024
        idx += 1
    digits = 0 if n >= 100 else 1 if n >= 10 else 2
    return f"{n:.{digits}f} {units[idx]}"
