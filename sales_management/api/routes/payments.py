from __future__ import annotations

import sqlite3
from typing import Any

from fastapi import APIRouter, Depends

from ...database.repositories.organizations_repo import Organization
from ...modules.payments import PaymentLedger
from ..deps import get_conn, get_org
from ..schemas import PaymentIn

# No update route: a wrong payment is deleted and added again.
router = APIRouter(prefix="/organizations/{org_slug}/invoices/{invoice_id}", tags=["payments"])


@router.get("/payments")
def list_payments(
    invoice_id: int,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    ledger = PaymentLedger(conn)
    payments = ledger.list_payments(org.organization_id, invoice_id)
    return {
        "invoice_id": invoice_id,
        "payments": [p.to_dict() for p in payments],
        "summary": ledger.summarize(org.organization_id, invoice_id).to_dict(),
    }


@router.post("/payments", status_code=201)
def add_payment(
    invoice_id: int,
    body: PaymentIn,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    payment, summary = PaymentLedger(conn).add_payment(org.organization_id, invoice_id, body.model_dump())
    return {"payment": payment.to_dict(), "summary": summary.to_dict(), "warnings": summary.warnings}


@router.delete("/payments/{payment_id}")
def delete_payment(
    invoice_id: int,
    payment_id: int,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    summary = PaymentLedger(conn).delete_payment(org.organization_id, invoice_id, payment_id)
    return {"summary": summary.to_dict()}


@router.get("/payment_summary")
def payment_summary(
    invoice_id: int,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    return PaymentLedger(conn).summarize(org.organization_id, invoice_id).to_dict()
