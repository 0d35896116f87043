# utils/validators.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from ..errors import ValidationError


def non_empty(text: str) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)
    """
    if isinstance(x, bool):
        return False, None
    try:
        return True, float(x)
    except (TypeError, ValueError):
        return False, None


def parse_float(x, field: str) -> float:
    """
    Strict parse to float; raises ValidationError naming the field on failure.
    """
    ok, val = try_parse_float(x)
    if not ok or val is None or val != val:  # NaN
        raise ValidationError(f"{field} must be a number, got {x!r}.", field=field)
    return val


def require_positive(x, field: str) -> float:
    val = parse_float(x, field)
    if val <= 0:
        raise ValidationError(f"{field} must be greater than 0.", field=field)
    return val


def require_non_negative(x, field: str) -> float:
    val = parse_float(x, field)
    if val < 0:
        raise ValidationError(f"{field} cannot be negative.", field=field)
    return val


def require_percent(x, field: str) -> float:
    val = parse_float(x, field)
    if val < 0 or val > 100:
        raise ValidationError(f"{field} must be between 0 and 100.", field=field)
    return val


def require_int(x, field: str) -> int:
    if isinstance(x, bool) or x is None:
        raise ValidationError(f"{field} is required.", field=field)
    if isinstance(x, float) and not x.is_integer():
        raise ValidationError(f"{field} must be a whole number, got {x!r}.", field=field)
    try:
        return int(x)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer id, got {x!r}.", field=field) from None


def optional_int(x, field: str) -> Optional[int]:
    if x is None or x == "":
        return None
    return require_int(x, field)


def require_text(x: Any, field: str) -> str:
    if not non_empty(x):
        raise ValidationError(f"{field} cannot be empty.", field=field)
    return str(x).strip()


def optional_text(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def iso_date(x: Any, field: str, *, default: Optional[str] = None) -> Optional[str]:
    """Normalize to 'YYYY-MM-DD'; None/empty falls back to `default`."""
    if x is None or x == "":
        return default
    if isinstance(x, date):
        return x.isoformat()
    try:
        return date.fromisoformat(str(x)[:10]).isoformat()
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format, got {x!r}.", field=field) from None
