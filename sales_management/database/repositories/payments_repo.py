from __future__ import annotations

from dataclasses import asdict, dataclass
import sqlite3
from typing import Optional


@dataclass
class Payment:
    payment_id: int | None
    invoice_id: int
    payment_date: str
    amount: float
    method: str
    reference_number: str | None = None
    notes: str | None = None
    created_at: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class InvoicePaymentsRepo:
    """
    Rows of invoice_payments.

    Lifecycle:
      • insert(...) records a payment; there is no update path (a DB trigger
        aborts UPDATE). A correction is delete + insert.
      • list_by_invoice(...) / total_paid(...) feed the payment ledger.
    Callers hold a write_transaction around writes.
    """

    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def _row(self, r: sqlite3.Row) -> Payment:
        return Payment(
            payment_id=int(r["payment_id"]),
            invoice_id=int(r["invoice_id"]),
            payment_date=r["payment_date"],
            amount=float(r["amount"]),
            method=r["method"],
            reference_number=r["reference_number"],
            notes=r["notes"],
            created_at=r["created_at"],
        )

    def insert(self, p: Payment) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO invoice_payments (
                invoice_id, payment_date, amount, method, reference_number, notes
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (p.invoice_id, p.payment_date, p.amount, p.method, p.reference_number, p.notes),
        )
        return int(cur.lastrowid)

    def get(self, payment_id: int) -> Optional[Payment]:
        r = self.conn.execute(
            "SELECT * FROM invoice_payments WHERE payment_id = ?",
            (payment_id,),
        ).fetchone()
        return self._row(r) if r else None

    def delete(self, payment_id: int) -> None:
        self.conn.execute("DELETE FROM invoice_payments WHERE payment_id = ?", (payment_id,))

    def list_by_invoice(self, invoice_id: int) -> list[Payment]:
        rows = self.conn.execute(
            """
            SELECT * FROM invoice_payments
             WHERE invoice_id = ?
             ORDER BY DATE(payment_date), payment_id
            """,
            (invoice_id,),
        ).fetchall()
        return [self._row(r) for r in rows]

    def total_paid(self, invoice_id: int) -> tuple[float, int]:
        """(Σ amount, number of payments) for an invoice."""
        r = self.conn.execute(
            """
            SELECT COALESCE(SUM(CAST(amount AS REAL)), 0.0) AS paid, COUNT(*) AS n
              FROM invoice_payments
             WHERE invoice_id = ?
            """,
            (invoice_id,),
        ).fetchone()
        return float(r["paid"]), int(r["n"])
