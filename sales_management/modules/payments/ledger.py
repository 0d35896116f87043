from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
import sqlite3
from typing import Any, Mapping

from ...constants import CANCELLED_STATUS, INVOICE, PAYMENT_METHODS
from ...database import write_transaction
from ...database.repositories.documents_repo import DocumentHeader, DocumentsRepo
from ...database.repositories.payments_repo import InvoicePaymentsRepo, Payment
from ...errors import NotFoundError, PreconditionError, ValidationError
from ...utils.helpers import round_money, today_str
from ...utils.loggers import get_event_logger, log_event
from ...utils.validators import iso_date, optional_text, require_positive
from .calculations import amount_due, is_overpaid, is_settled, project_after_payment, status_from_paid

_log = logging.getLogger(__name__)


@dataclass
class PaymentSummary:
    invoice_id: int
    total_amount: float
    amount_paid: float
    amount_due: float
    payment_count: int
    is_settled: bool
    is_overpaid: bool
    payment_state: str
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class PaymentLedger:
    """
    Payments recorded against one invoice, and the paid / due roll-up.

    Every mutation runs in one write transaction and returns the summary
    recomputed inside it. Over-payment is recorded and flagged, never clamped.
    The invoice status is left to the caller.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.invoices = DocumentsRepo(conn, INVOICE)
        self.repo = InvoicePaymentsRepo(conn)
        self._events = get_event_logger()

    # ---- helpers ----------------------------------------------------------

    def _writable_invoice(self, organization_id: int, invoice_id: int) -> DocumentHeader:
        inv = self.invoices.get(invoice_id, with_items=False, include_deleted=True)
        if inv is not None and inv.organization_id == organization_id and inv.is_deleted:
            raise PreconditionError(
                f"Invoice {invoice_id} is deleted; payments are closed.",
                context={"invoice_id": invoice_id},
            )
        return self.invoices.require(organization_id, invoice_id, with_items=False)

    def _summary(self, inv: DocumentHeader) -> PaymentSummary:
        paid, count = self.repo.total_paid(inv.id)
        paid = round_money(paid)
        total = round_money(inv.total_amount or 0.0)
        return PaymentSummary(
            invoice_id=inv.id,
            total_amount=total,
            amount_paid=paid,
            amount_due=amount_due(total, paid),
            payment_count=count,
            is_settled=is_settled(total, paid),
            is_overpaid=is_overpaid(total, paid),
            payment_state=status_from_paid(total, paid),
        )

    @staticmethod
    def _normalize(invoice_id: int, data: Mapping[str, Any]) -> Payment:
        amount = round_money(require_positive(data.get("amount"), "amount"))
        if amount <= 0:
            raise ValidationError("amount must be at least 0.01.", field="amount")
        method = (data.get("method") or "").strip().lower()
        if method not in PAYMENT_METHODS:
            raise ValidationError(
                f"method must be one of: {', '.join(PAYMENT_METHODS)}.",
                field="method",
            )
        return Payment(
            payment_id=None,
            invoice_id=invoice_id,
            payment_date=iso_date(data.get("payment_date"), "payment_date", default=today_str()),
            amount=amount,
            method=method,
            reference_number=optional_text(data.get("reference_number")),
            notes=optional_text(data.get("notes")),
        )

    # ---- reads ------------------------------------------------------------

    def summarize(self, organization_id: int, invoice_id: int) -> PaymentSummary:
        return self._summary(self.invoices.require(organization_id, invoice_id, with_items=False))

    def list_payments(self, organization_id: int, invoice_id: int) -> list[Payment]:
        self.invoices.require(organization_id, invoice_id, with_items=False)
        return self.repo.list_by_invoice(invoice_id)

    # ---- writes -----------------------------------------------------------

    def add_payment(self, organization_id: int, invoice_id: int, data: Mapping[str, Any]) -> tuple[Payment, PaymentSummary]:
        payment = self._normalize(invoice_id, data)

        with write_transaction(self.conn):
            inv = self._writable_invoice(organization_id, invoice_id)
            if inv.status == CANCELLED_STATUS:
                raise PreconditionError(
                    f"Invoice {inv.code} is cancelled; payments are closed.",
                    context={"invoice_id": invoice_id, "status": inv.status},
                )
            before = self._summary(inv)
            _, projected_due = project_after_payment(
                total_amount=before.total_amount,
                current_paid_amount=before.amount_paid,
                new_payment_amount=payment.amount,
            )
            payment.payment_id = self.repo.insert(payment)
            summary = self._summary(inv)

        log_event(
            self._events,
            "add_payment",
            "done",
            f"payment {payment.payment_id} recorded on {inv.code}",
            {"organization_id": organization_id, "invoice_id": invoice_id, "amount": payment.amount, "amount_due": summary.amount_due},
        )
        if summary.is_overpaid:
            msg = (
                f"Payment exceeds the amount due by {-projected_due:.2f}; "
                f"invoice {inv.code} is over-paid."
            )
            summary.warnings.append(msg)
            log_event(
                self._events,
                "add_payment",
                "flagged",
                msg,
                {"organization_id": organization_id, "invoice_id": invoice_id, "amount_due": summary.amount_due},
                level=logging.WARNING,
            )
        return payment, summary

    def delete_payment(self, organization_id: int, invoice_id: int, payment_id: int) -> PaymentSummary:
        with write_transaction(self.conn):
            inv = self._writable_invoice(organization_id, invoice_id)
            payment = self.repo.get(payment_id)
            if payment is None or payment.invoice_id != invoice_id:
                raise NotFoundError(
                    f"Payment {payment_id} not found on invoice {invoice_id}.",
                    context={"invoice_id": invoice_id, "payment_id": payment_id},
                )
            self.repo.delete(payment_id)
            summary = self._summary(inv)

        log_event(
            self._events,
            "delete_payment",
            "done",
            f"payment {payment_id} removed from {inv.code}",
            {"organization_id": organization_id, "invoice_id": invoice_id, "amount": payment.amount, "amount_due": summary.amount_due},
        )
        return summary
