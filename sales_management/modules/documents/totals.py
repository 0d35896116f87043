"""
documents/totals.py

Line-item and header math for priced documents.

  line gross      = quantity * unit_price
  line discount   = gross * discount_percent / 100   (or a flat discount_amount)
  line subtotal   = gross - line discount
  subtotal        = sum(line subtotals)
  tax_amount      = subtotal * tax_rate / 100
  total_amount    = subtotal + tax_amount - discount_amount

Stored subtotals and totals are a cache: values sent by a caller are
recomputed here and compared (half-cent tolerance), never trusted.
No DB access in this module.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from ...constants import MONEY_TOLERANCE
from ...database.repositories.documents_repo import LineItem
from ...errors import ValidationError
from ...utils.helpers import round_money
from ...utils.validators import (
    optional_text,
    parse_float,
    require_int,
    require_non_negative,
    require_percent,
    require_positive,
)

__all__ = [
    "money_matches",
    "check_supplied",
    "line_amounts",
    "normalize_line",
    "normalize_lines",
    "document_totals",
]


def money_matches(a: float, b: float) -> bool:
    return abs(float(a) - float(b)) < MONEY_TOLERANCE


def check_supplied(supplied: Any, computed: float, field: str) -> None:
    """A caller-supplied amount must agree with the recomputed one."""
    if supplied is None or supplied == "":
        return
    value = parse_float(supplied, field)
    if not money_matches(value, computed):
        raise ValidationError(
            f"{field} is {round_money(value):.2f} but the lines add up to {computed:.2f}.",
            field=field,
            context={"supplied": value, "computed": computed},
        )


def line_amounts(
    quantity: float,
    unit_price: float,
    discount_percent: float = 0.0,
    discount_amount: Optional[float] = None,
) -> tuple[float, float, float]:
    """
    Returns (discount_percent, discount_amount, subtotal).

    A percentage wins over a flat amount; a flat amount alone back-fills the
    percentage so both columns stay consistent.
    """
    gross = float(quantity) * float(unit_price)
    if discount_percent:
        disc = round_money(gross * float(discount_percent) / 100.0)
        pct = float(discount_percent)
    else:
        disc = round_money(discount_amount or 0.0)
        pct = round(disc / gross * 100.0, 6) if gross > 0 else 0.0
    return pct, disc, round_money(gross - disc)


def normalize_line(raw: Mapping[str, Any] | LineItem, index: int, *, priced: bool) -> LineItem:
    """Validate one submitted line and return it with derived amounts filled in."""
    e = raw.to_dict() if isinstance(raw, LineItem) else dict(raw)
    prefix = f"items[{index}]"

    product_id = require_int(e.get("product_id"), f"{prefix}.product_id")
    quantity = require_positive(e.get("quantity"), f"{prefix}.quantity")
    line = LineItem(
        product_id=product_id,
        quantity=quantity,
        product_name=optional_text(e.get("product_name")),
        unit=optional_text(e.get("unit")),
        notes=optional_text(e.get("notes")),
    )
    if not priced:
        return line

    unit_price = require_non_negative(e.get("unit_price", 0) or 0, f"{prefix}.unit_price")
    pct_raw = e.get("discount_percent")
    pct_in = require_percent(pct_raw, f"{prefix}.discount_percent") if pct_raw not in (None, "") else 0.0
    amt_raw = e.get("discount_amount")
    amt_in = require_non_negative(amt_raw, f"{prefix}.discount_amount") if amt_raw not in (None, "") else None

    gross = quantity * unit_price
    if amt_in is not None and not pct_in and amt_in > gross + MONEY_TOLERANCE:
        raise ValidationError(
            f"{prefix}.discount_amount cannot exceed the line amount {round_money(gross):.2f}.",
            field=f"{prefix}.discount_amount",
        )

    pct, disc, subtotal = line_amounts(quantity, unit_price, pct_in, amt_in)
    if pct_in and amt_in is not None:
        check_supplied(amt_in, disc, f"{prefix}.discount_amount")
    check_supplied(e.get("subtotal"), subtotal, f"{prefix}.subtotal")

    line.unit_price = unit_price
    line.discount_percent = pct
    line.discount_amount = disc
    line.subtotal = subtotal
    return line


def normalize_lines(raw_items: Iterable[Any], *, priced: bool) -> list[LineItem]:
    items = [normalize_line(raw, i, priced=priced) for i, raw in enumerate(raw_items or [])]
    if not items:
        raise ValidationError("A document needs at least one line item.", field="items")
    return items


def document_totals(items: Iterable[LineItem], discount_amount: float = 0.0, tax_rate: float = 0.0) -> dict[str, float]:
    subtotal = round_money(sum(it.subtotal for it in items))
    tax_amount = round_money(subtotal * float(tax_rate) / 100.0)
    total = round_money(subtotal + tax_amount - float(discount_amount))
    if total < 0:
        raise ValidationError(
            f"discount_amount {float(discount_amount):.2f} exceeds subtotal plus tax {subtotal + tax_amount:.2f}.",
            field="discount_amount",
        )
    return {"subtotal": subtotal, "tax_amount": tax_amount, "total_amount": total}
