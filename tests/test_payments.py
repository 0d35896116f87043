# tests/test_payments.py
import logging
import sqlite3

import pytest

from sales_management.errors import AuthorizationError, NotFoundError, PreconditionError, ValidationError
from sales_management.modules.documents import DocumentService
from sales_management.modules.payments import PaymentLedger
from sales_management.modules.payments.calculations import (
    amount_due,
    display_amount_due,
    is_overpaid,
    is_settled,
    project_after_payment,
    status_from_paid,
)
from sales_management.utils.loggers import get_event_logger


@pytest.fixture()
def invoice(create_doc, sales_order):
    """Invoice converted from the 200.00 sales order."""
    return create_doc("invoice", {"source_id": sales_order["id"], "source_type": "sales_order"})


def _pay(conn, org, inv, amount, method="cash", **extra):
    data = {"amount": amount, "method": method, "payment_date": "2025-06-01", **extra}
    return PaymentLedger(conn).add_payment(org.organization_id, inv["id"], data)


# -----------------------------
# calculations
# -----------------------------

def test_pure_calculations():
    assert amount_due(200, 150) == 50
    assert amount_due(200, 250) == -50
    assert display_amount_due(200, 250) == 0.0
    assert is_settled(200, 200) and is_settled(200, 199.996)
    assert not is_settled(200, 199.99)
    assert is_overpaid(200, 200.01) and not is_overpaid(200, 200)
    assert project_after_payment(total_amount=100, current_paid_amount=40, new_payment_amount=70) == (110, -10)
    assert [status_from_paid(100, p) for p in (0, 1, 100)] == ["unpaid", "partial", "paid"]


# -----------------------------
# ledger
# -----------------------------

def test_paid_and_due_follow_adds_and_deletes(conn, org, invoice):
    assert invoice["total_amount"] == 200.00

    p1, s1 = _pay(conn, org, invoice, 50)
    assert (s1.amount_paid, s1.amount_due, s1.payment_state) == (50, 150, "partial")
    p2, s2 = _pay(conn, org, invoice, 50, method="bank_transfer", reference_number="TRX-1")
    assert (s2.amount_paid, s2.amount_due, s2.payment_count) == (100, 100, 2)

    ledger = PaymentLedger(conn)
    after = ledger.delete_payment(org.organization_id, invoice["id"], p2.payment_id)
    assert (after.amount_paid, after.amount_due, after.payment_count) == (50, 150, 1)
    assert [p.payment_id for p in ledger.list_payments(org.organization_id, invoice["id"])] == [p1.payment_id]


def test_overpayment_is_recorded_and_flagged(conn, org, invoice, caplog):
    _pay(conn, org, invoice, 150)
    # the event logger does not propagate to root
    events = get_event_logger()
    events.addHandler(caplog.handler)
    try:
        payment, summary = _pay(conn, org, invoice, 100)
    finally:
        events.removeHandler(caplog.handler)

    assert payment.payment_id is not None
    assert summary.amount_paid == 250
    assert summary.amount_due == -50
    assert summary.is_overpaid and summary.is_settled
    assert summary.warnings and "50.00" in summary.warnings[0]
    assert any(r.levelno == logging.WARNING for r in caplog.records)


def test_invoice_status_is_left_alone(conn, org, invoice):
    _pay(conn, org, invoice, 200)
    assert DocumentService(conn, "invoice").get(org.organization_id, invoice["id"])["status"] == invoice["status"]


@pytest.mark.parametrize("amount", [0, -5, "abc", 0.001])
def test_non_positive_amounts_are_rejected(conn, org, invoice, amount):
    with pytest.raises(ValidationError) as exc:
        _pay(conn, org, invoice, amount)
    assert exc.value.field == "amount"


def test_unknown_method_is_rejected(conn, org, invoice):
    with pytest.raises(ValidationError) as exc:
        _pay(conn, org, invoice, 10, method="barter")
    assert exc.value.field == "method"


def test_cancelled_or_deleted_invoice_closes_payments(conn, org, create_doc, sales_order, invoice):
    svc = DocumentService(conn, "invoice")
    svc.update(
        org.organization_id,
        invoice["id"],
        {"customer_id": invoice["customer_id"], "status": "cancelled", "items": invoice["items"]},
    )
    with pytest.raises(PreconditionError):
        _pay(conn, org, invoice, 10)

    second = create_doc("invoice", {"source_id": sales_order["id"], "source_type": "sales_order"})
    svc.delete(org.organization_id, second["id"])
    with pytest.raises(PreconditionError):
        _pay(conn, org, second, 10)


def test_invoice_with_payments_cannot_be_deleted(conn, org, invoice):
    p, _ = _pay(conn, org, invoice, 20)
    svc = DocumentService(conn, "invoice")
    with pytest.raises(PreconditionError) as exc:
        svc.delete(org.organization_id, invoice["id"])
    assert exc.value.context == {"payments": 1}

    PaymentLedger(conn).delete_payment(org.organization_id, invoice["id"], p.payment_id)
    svc.delete(org.organization_id, invoice["id"])
    with pytest.raises(NotFoundError):
        svc.get(org.organization_id, invoice["id"])


def test_payment_must_belong_to_the_invoice(conn, org, create_doc, sales_order, invoice):
    other = create_doc("invoice", {"source_id": sales_order["id"], "source_type": "sales_order"})
    p, _ = _pay(conn, org, other, 20)
    with pytest.raises(NotFoundError):
        PaymentLedger(conn).delete_payment(org.organization_id, invoice["id"], p.payment_id)
    with pytest.raises(NotFoundError):
        PaymentLedger(conn).delete_payment(org.organization_id, invoice["id"], 9999)


def test_foreign_organization_cannot_touch_payments(conn, org, other_org, invoice):
    with pytest.raises(AuthorizationError):
        PaymentLedger(conn).add_payment(other_org.organization_id, invoice["id"], {"amount": 5, "method": "cash"})
    with pytest.raises(AuthorizationError):
        PaymentLedger(conn).summarize(other_org.organization_id, invoice["id"])


def test_payment_rows_cannot_be_updated(conn, org, invoice):
    p, _ = _pay(conn, org, invoice, 20)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("UPDATE invoice_payments SET amount = 30 WHERE payment_id = ?", (p.payment_id,))
    conn.rollback()
