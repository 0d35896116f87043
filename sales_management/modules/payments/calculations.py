"""
payments/calculations.py

Pure helpers for invoice payment math. The ledger never clamps: amount_due
goes negative on over-payment. Display helpers clamp at zero.

Do not import repos or open DB connections here.
"""
from __future__ import annotations

from typing import Tuple

from ...constants import MONEY_TOLERANCE
from ...utils.helpers import round_money

__all__ = [
    "clamp_non_negative",
    "amount_due",
    "display_amount_due",
    "is_settled",
    "is_overpaid",
    "project_after_payment",
    "status_from_paid",
]


# -----------------------------
# Core utilities
# -----------------------------

def clamp_non_negative(x: float) -> float:
    """Return x if x > 0, else 0.0."""
    return x if x > 0.0 else 0.0


def amount_due(total_amount: float, amount_paid: float) -> float:
    """total - paid, rounded to cents. Negative when over-paid."""
    return round_money(total_amount - amount_paid)


def display_amount_due(total_amount: float, amount_paid: float) -> float:
    return clamp_non_negative(amount_due(total_amount, amount_paid))


def is_settled(total_amount: float, amount_paid: float) -> bool:
    return amount_due(total_amount, amount_paid) < MONEY_TOLERANCE


def is_overpaid(total_amount: float, amount_paid: float) -> bool:
    return amount_due(total_amount, amount_paid) <= -MONEY_TOLERANCE


# -----------------------------
# Projections
# -----------------------------

def project_after_payment(
    *,
    total_amount: float,
    current_paid_amount: float,
    new_payment_amount: float,
) -> Tuple[float, float]:
    """
    Returns (projected_paid_amount, projected_amount_due) for a payment that
    has not been recorded yet.
    """
    projected_paid = round_money(current_paid_amount + new_payment_amount)
    return projected_paid, amount_due(total_amount, projected_paid)


# -----------------------------
# Common status helper
# -----------------------------

def status_from_paid(total: float, paid: float) -> str:
    """
    Threshold helper for badges (the invoice status itself is never touched):
      - 'paid'    if paid >= total
      - 'partial' if 0 < paid < total
      - 'unpaid'  if paid == 0
    """
    if is_settled(total, paid):
        return "paid"
    if paid > 0:
        return "partial"
    return "unpaid"
