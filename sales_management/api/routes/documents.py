from __future__ import annotations

import sqlite3
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from ...constants import DELIVERY_ORDER
from ...database.repositories.organizations_repo import Organization
from ...modules.documents import DocumentService
from ...modules.fulfillment import FulfillmentLedger
from ..deps import get_conn, get_org, resolve_document_type
from ..schemas import DocumentIn, DraftIn, MarkDeliveredIn

router = APIRouter(prefix="/organizations/{org_slug}", tags=["documents"])


@router.get("/sales_orders/{document_id}/delivery_summary")
def delivery_summary(
    document_id: int,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    ledger = FulfillmentLedger(conn)
    rows = ledger.summarize(org.organization_id, document_id)
    return {
        "sales_order_id": document_id,
        "rows": [r.to_dict() for r in rows],
        "totals": ledger.totals(rows),
        "selectable_product_ids": [r.product_id for r in rows if not r.is_fully_delivered],
    }


@router.post("/delivery_orders/{document_id}/mark-delivered")
def mark_delivered(
    document_id: int,
    body: Optional[MarkDeliveredIn] = None,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    delivered_by_id = body.delivered_by_id if body is not None else None
    return DocumentService(conn, DELIVERY_ORDER).mark_delivered(org.organization_id, document_id, delivered_by_id)


@router.get("/{document_path}")
def list_documents(
    document_path: str,
    customer_id: Optional[int] = Query(None),
    sales_person_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    sales_order_id: Optional[int] = Query(None),
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_path)
    rows = DocumentService(conn, dt).list_documents(
        org.organization_id,
        customer_id=customer_id,
        sales_person_id=sales_person_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        sales_order_id=sales_order_id,
    )
    return {"document_type": dt, "count": len(rows), "documents": rows}


@router.post("/{document_path}", status_code=201)
def create_document(
    document_path: str,
    body: DocumentIn,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_path)
    doc, warnings = DocumentService(conn, dt).create(org.organization_id, body.model_dump(exclude_unset=True))
    doc["warnings"] = warnings
    return doc


@router.post("/{document_path}/draft")
def draft_document(
    document_path: str,
    body: DraftIn,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_path)
    return DocumentService(conn, dt).draft(org.organization_id, body.source_id, body.source_type).to_dict()


@router.get("/{document_path}/{document_id}")
def get_document(
    document_path: str,
    document_id: int,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_path)
    return DocumentService(conn, dt).get(org.organization_id, document_id)


@router.put("/{document_path}/{document_id}")
def update_document(
    document_path: str,
    document_id: int,
    body: DocumentIn,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_path)
    return DocumentService(conn, dt).update(org.organization_id, document_id, body.model_dump(exclude_unset=True))


@router.delete("/{document_path}/{document_id}", status_code=204)
def delete_document(
    document_path: str,
    document_id: int,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> None:
    dt = resolve_document_type(document_path)
    DocumentService(conn, dt).delete(org.organization_id, document_id)

