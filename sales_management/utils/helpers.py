# utils/helpers.py
from datetime import date
import re

from ..constants import QTY_DECIMALS, QTY_EPSILON


def today_str() -> str:
    """Return today's date as ISO string (YYYY-MM-DD)."""
    return date.today().isoformat()


def round_money(v: float) -> float:
    # "+ 0.0" folds -0.0 into 0.0
    return round(float(v), 2) + 0.0


def round_qty(v: float) -> float:
    """Drop float noise from summed quantities: 0.1 + 0.2 -> 0.3, 1e-12 -> 0.0"""
    q = round(float(v), QTY_DECIMALS)
    if abs(q) < QTY_EPSILON:
        return 0.0
    return q + 0.0


def fmt_qty(v: float) -> str:
    """6.0 -> '6', 2.5 -> '2.5'"""
    return f"{float(v):g}"


def slugify_key(label: str) -> str:
    """'In Transit' -> 'in_transit'"""
    s = re.sub(r"\s+", "_", str(label).strip().lower())
    return re.sub(r"[^a-z0-9_]", "", s)
