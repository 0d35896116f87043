"""
numbering/formatter.py

Pure helpers for document codes. No DB access here; the counter is read and
persisted by NumberingService inside the document's write transaction.

Tokens:
  {YYYY} {YY} {MM} {DD}          date parts
  {YYMM} {YYYYMM} {MMYY}         composite date parts
  {Ndigits}                      counter zero-padded to N (1..10)

Examples:
  'SO-{YYMM}-{5digits}', 1, 2025-12-01    -> 'SO-2512-00001'
  'INV-{YYYY}-{6digits}', 42, 2025-12-01  -> 'INV-2025-000042'
  '{YY}{MM}{DD}-{4digits}', 123, 2025-12-22 -> '251222-0123'
"""
from __future__ import annotations

from datetime import date, datetime
import re
from typing import Optional, Union

from ...constants import RESET_PERIODS
from ...errors import ValidationError

__all__ = [
    "format_code",
    "validate_format",
    "preview_format",
    "should_reset_counter",
    "next_counter",
]

DateLike = Union[date, datetime, str]

_TOKEN_RX = re.compile(r"\{([^{}]*)\}")
_DIGITS_RX = re.compile(r"^(\d+)digits$")

MIN_DIGITS = 1
MAX_DIGITS = 10


def as_date(value: Optional[DateLike], field: str = "date") -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format, got {value!r}.", field=field) from None


def _date_tokens(d: date) -> dict[str, str]:
    yyyy = f"{d.year:04d}"
    yy = yyyy[-2:]
    mm = f"{d.month:02d}"
    return {
        "YYYY": yyyy,
        "YY": yy,
        "MM": mm,
        "DD": f"{d.day:02d}",
        "YYMM": yy + mm,
        "YYYYMM": yyyy + mm,
        "MMYY": mm + yy,
    }


_DATE_TOKENS = frozenset(_date_tokens(date(2000, 1, 1)))

# calendar parts each date token pins down
_TOKEN_PARTS: dict[str, frozenset[str]] = {
    "YYYY": frozenset({"year"}),
    "YY": frozenset({"year"}),
    "MM": frozenset({"month"}),
    "DD": frozenset({"day"}),
    "YYMM": frozenset({"year", "month"}),
    "YYYYMM": frozenset({"year", "month"}),
    "MMYY": frozenset({"year", "month"}),
}

_RESET_NEEDS: dict[str, frozenset[str]] = {
    "never": frozenset(),
    "daily": frozenset({"year", "month", "day"}),
    "monthly": frozenset({"year", "month"}),
    "yearly": frozenset({"year"}),
}


# -----------------------------
# Validation
# -----------------------------

def validate_format(template: str, reset_period: Optional[str] = None) -> str:
    """
    Return the template unchanged if usable, else raise ValidationError(field='format_template').

    Rules:
      - non-empty
      - at least one {Ndigits} token, every N within 1..10
      - no other {...} token besides the date tokens
      - with a reset_period: the date tokens tell every reset window apart
        (daily: year, month and day; monthly: year and month; yearly: year)
    """
    if not isinstance(template, str) or not template.strip():
        raise ValidationError("Format must be a non-empty string.", field="format_template")

    tokens = _TOKEN_RX.findall(template)
    has_digits = False
    for token in tokens:
        m = _DIGITS_RX.match(token)
        if m:
            n = int(m.group(1))
            if n < MIN_DIGITS or n > MAX_DIGITS:
                raise ValidationError(
                    f"Invalid digit count in {{{token}}}. Must be between {MIN_DIGITS} and {MAX_DIGITS}.",
                    field="format_template",
                )
            has_digits = True
        elif token not in _DATE_TOKENS:
            raise ValidationError(f"Unknown token {{{token}}} in format.", field="format_template")

    if not has_digits:
        raise ValidationError(
            "Format must contain at least one {Ndigits} token (e.g. {5digits}).",
            field="format_template",
        )

    if reset_period is not None:
        if reset_period not in RESET_PERIODS:
            raise ValidationError(
                f"reset_period must be one of: {', '.join(RESET_PERIODS)}.",
                field="reset_period",
            )
        present: set[str] = set()
        for token in tokens:
            present |= _TOKEN_PARTS.get(token, frozenset())
        missing = sorted(_RESET_NEEDS[reset_period] - present)
        if missing:
            raise ValidationError(
                f"A {reset_period} counter reset needs {' and '.join(missing)} in the format; "
                f"otherwise codes repeat after a reset.",
                field="format_template",
                context={"reset_period": reset_period, "missing": missing},
            )
    return template


# -----------------------------
# Formatting
# -----------------------------

def format_code(template: str, counter: int, current_date: Optional[DateLike] = None) -> str:
    """
    Substitute every token. A counter wider than its token is printed in full.
    """
    validate_format(template)
    if isinstance(counter, bool) or not isinstance(counter, int) or counter < 1:
        raise ValidationError("Counter must be a positive integer.", field="counter")

    parts = _date_tokens(as_date(current_date))

    def _sub(m: re.Match) -> str:
        token = m.group(1)
        digits = _DIGITS_RX.match(token)
        if digits:
            return str(counter).zfill(int(digits.group(1)))
        return parts[token]

    return _TOKEN_RX.sub(_sub, template)


def preview_format(template: str, counter: int = 1, current_date: Optional[DateLike] = None) -> str:
    """format_code for settings screens; nothing is persisted."""
    return format_code(template, counter, current_date)


# -----------------------------
# Counter windows
# -----------------------------

def should_reset_counter(
    reset_period: str,
    last_date: Optional[DateLike],
    current_date: Optional[DateLike] = None,
) -> bool:
    """
    True when current_date falls in a different window than last_date:
      - 'daily'   different calendar day
      - 'monthly' different (year, month)
      - 'yearly'  different year
      - 'never'   never
    No previous date means the counter was never used: no reset.
    """
    if reset_period not in RESET_PERIODS:
        raise ValidationError(
            f"reset_period must be one of: {', '.join(RESET_PERIODS)}.",
            field="reset_period",
        )
    if reset_period == "never" or not last_date:
        return False

    last = as_date(last_date, "last_reset_date")
    curr = as_date(current_date)

    if reset_period == "daily":
        return last != curr
    if reset_period == "monthly":
        return (last.year, last.month) != (curr.year, curr.month)
    return last.year != curr.year


def next_counter(
    current_counter: int,
    reset_period: str,
    last_date: Optional[DateLike],
    current_date: Optional[DateLike] = None,
) -> int:
    if should_reset_counter(reset_period, last_date, current_date):
        return 1
    return int(current_counter or 0) + 1
