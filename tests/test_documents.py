# tests/test_documents.py
import re

import pytest

from sales_management.errors import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    ReferentialError,
    ValidationError,
)
from sales_management.modules.documents import DocumentService
from sales_management.modules.documents.totals import document_totals, line_amounts, normalize_line


# -----------------------------
# totals
# -----------------------------

def test_line_amounts_percent_and_flat_discount():
    assert line_amounts(4, 25, 10) == (10.0, 10.0, 90.0)
    pct, disc, sub = line_amounts(3, 10, 0, 5)
    assert (disc, sub) == (5.0, 25.0)
    assert pct == round(5 / 30 * 100, 6)


def test_normalize_line_reports_the_index():
    with pytest.raises(ValidationError) as exc:
        normalize_line({"product_id": 1, "quantity": 0, "unit_price": 1}, 2, priced=True)
    assert exc.value.field == "items[2].quantity"

    with pytest.raises(ValidationError) as exc:
        normalize_line({"product_id": 1, "quantity": 2, "unit_price": 5, "discount_amount": 11}, 0, priced=True)
    assert exc.value.field == "items[0].discount_amount"


def test_document_totals_rejects_negative_total():
    line = normalize_line({"product_id": 1, "quantity": 1, "unit_price": 10}, 0, priced=True)
    assert document_totals([line], 2, 10) == {"subtotal": 10.0, "tax_amount": 1.0, "total_amount": 9.0}
    with pytest.raises(ValidationError) as exc:
        document_totals([line], 12, 0)
    assert exc.value.field == "discount_amount"


# -----------------------------
# create
# -----------------------------

def test_create_quotation_computes_totals(create_doc, quotation_payload):
    q = create_doc("quotation", dict(quotation_payload, tax_rate=5))
    assert q["subtotal"] == 40.00
    assert q["tax_amount"] == 2.00
    assert q["total_amount"] == 42.00
    assert q["status"] == "draft"
    assert q["status_label"] == "Draft"
    assert re.fullmatch(r"QT-\d{4}-00001", q["code"])
    assert [it["line_order"] for it in q["items"]] == [0, 1]
    assert q["is_revenue_recognized"] is False


def test_codes_increase_per_type(create_doc, quotation_payload):
    first = create_doc("quotation", quotation_payload)
    second = create_doc("quotation", quotation_payload)
    assert first["code"][-5:] == "00001"
    assert second["code"][-5:] == "00002"


def test_supplied_totals_must_match(create_doc, quotation_payload):
    with pytest.raises(ValidationError) as exc:
        create_doc("quotation", dict(quotation_payload, subtotal=41))
    assert exc.value.field == "subtotal"

    bad_line = dict(quotation_payload["items"][0], subtotal=31)
    with pytest.raises(ValidationError) as exc:
        create_doc("quotation", dict(quotation_payload, items=[bad_line]))
    assert exc.value.field == "items[0].subtotal"

    ok = create_doc("quotation", dict(quotation_payload, subtotal=40.004, total_amount=40))
    assert ok["total_amount"] == 40.00


def test_create_requires_items_and_customer(create_doc, quotation_payload):
    with pytest.raises(ValidationError) as exc:
        create_doc("quotation", dict(quotation_payload, items=[]))
    assert exc.value.field == "items"

    payload = dict(quotation_payload)
    payload.pop("customer_id")
    with pytest.raises(ValidationError) as exc:
        create_doc("quotation", payload)
    assert exc.value.field == "customer_id"


def test_fractional_ids_are_rejected_not_truncated(create_doc, quotation_payload):
    with pytest.raises(ValidationError) as exc:
        create_doc("quotation", dict(quotation_payload, customer_id=501.7))
    assert exc.value.field == "customer_id"
    assert "whole number" in str(exc.value)

    with pytest.raises(ValidationError) as exc:
        create_doc("quotation", dict(quotation_payload, sales_person_id=7.5))
    assert exc.value.field == "sales_person_id"

    assert create_doc("quotation", dict(quotation_payload, customer_id=501.0))["customer_id"] == 501


def test_unknown_status_is_referential(create_doc, quotation_payload):
    with pytest.raises(ReferentialError) as exc:
        create_doc("quotation", dict(quotation_payload, status="won"))
    assert exc.value.field == "status"


def test_expiry_before_document_date(create_doc, quotation_payload):
    with pytest.raises(ValidationError) as exc:
        create_doc("quotation", dict(quotation_payload, document_date="2025-06-10", expiry_date="2025-06-01"))
    assert exc.value.field == "expiry_date"


def test_delivery_orders_carry_no_prices(create_doc, sales_order):
    do = create_doc("delivery_order", {
        "customer_id": sales_order["customer_id"],
        "sales_order_id": sales_order["id"],
        "delivery_address": "Dock 4",
        "items": [{"product_id": 1, "quantity": 1, "unit_price": 99}],
    })
    assert "total_amount" not in do
    assert "unit_price" not in do["items"][0]
    assert do["delivery_address"] == "Dock 4"


def test_direct_create_cannot_claim_a_quotation(conn, org, create_doc, quotation_payload, ids):
    q = create_doc("quotation", quotation_payload)
    so = create_doc("sales_order", dict(quotation_payload, source_quotation_id=q["id"]))
    assert so["source_quotation_id"] is None
    assert DocumentService(conn, "quotation").get(org.organization_id, q["id"])["converted_to_sales_order_id"] is None


def test_delivery_against_cancelled_order_is_blocked(conn, org, create_doc, sales_order):
    DocumentService(conn, "sales_order").update(
        org.organization_id,
        sales_order["id"],
        {"customer_id": sales_order["customer_id"], "status": "cancelled", "items": sales_order["items"]},
    )
    with pytest.raises(PreconditionError) as exc:
        create_doc("delivery_order", {
            "customer_id": sales_order["customer_id"],
            "sales_order_id": sales_order["id"],
            "items": [{"product_id": 1, "quantity": 1}],
        })
    assert exc.value.field == "sales_order_id"


# -----------------------------
# read
# -----------------------------

def test_get_scopes_by_organization(conn, org, other_org, create_doc, quotation_payload):
    q = create_doc("quotation", quotation_payload)
    svc = DocumentService(conn, "quotation")
    with pytest.raises(AuthorizationError):
        svc.get(other_org.organization_id, q["id"])
    with pytest.raises(NotFoundError):
        svc.get(org.organization_id, 12345)


def test_list_filters(conn, org, create_doc, quotation_payload, ids):
    create_doc("quotation", dict(quotation_payload, document_date="2025-01-05"))
    create_doc("quotation", dict(quotation_payload, document_date="2025-02-05", status="sent"))
    create_doc("quotation", dict(quotation_payload, document_date="2025-03-05", customer_id=777, sales_person_id=None))

    svc = DocumentService(conn, "quotation")
    oid = org.organization_id
    everything = svc.list_documents(oid)
    assert [d["document_date"] for d in everything] == ["2025-03-05", "2025-02-05", "2025-01-05"]
    assert "items" not in everything[0]

    assert len(svc.list_documents(oid, customer_id=ids["customer"])) == 2
    assert len(svc.list_documents(oid, sales_person_id=ids["sales_person"])) == 2
    assert [d["status"] for d in svc.list_documents(oid, status="sent")] == ["sent"]
    assert len(svc.list_documents(oid, date_from="2025-02-01", date_to="2025-02-28")) == 1

    with pytest.raises(ValidationError):
        svc.list_documents(oid, date_from="05/02/2025")


# -----------------------------
# update
# -----------------------------

def test_update_replaces_items_and_keeps_code(conn, org, create_doc, quotation_payload):
    q = create_doc("quotation", quotation_payload)
    svc = DocumentService(conn, "quotation")
    updated = svc.update(
        org.organization_id,
        q["id"],
        {
            "customer_id": q["customer_id"],
            "status": "sent",
            "items": [{"product_id": 3, "product_name": "Widget C", "quantity": 1, "unit_price": 7.5}],
        },
    )
    assert updated["code"] == q["code"]
    assert updated["status"] == "sent"
    assert updated["subtotal"] == 7.5
    assert [it["product_id"] for it in updated["items"]] == [3]
    assert updated["updated_at"] is not None


def test_links_cannot_be_rewritten(conn, org, create_doc, sales_order):
    inv = create_doc("invoice", {"source_id": sales_order["id"], "source_type": "sales_order"})
    with pytest.raises(ValidationError) as exc:
        DocumentService(conn, "invoice").update(
            org.organization_id,
            inv["id"],
            {"customer_id": inv["customer_id"], "sales_order_id": sales_order["id"] + 1, "items": inv["items"]},
        )
    assert exc.value.field == "sales_order_id"


def test_existing_status_survives_registry_deactivation(conn, org, create_doc, quotation_payload):
    from sales_management.modules.statuses import StatusRegistry

    q = create_doc("quotation", dict(quotation_payload, status="sent"))
    reg = StatusRegistry(conn)
    entries = [s.to_dict() for s in reg.list_statuses(org.organization_id, "quotation")]
    for e in entries:
        if e["status_key"] == "sent":
            e["is_active"] = False
    reg.replace(org.organization_id, "quotation", entries)

    # unchanged status is not re-validated
    updated = DocumentService(conn, "quotation").update(
        org.organization_id, q["id"], {"customer_id": q["customer_id"], "notes": "edited", "items": q["items"]}
    )
    assert updated["status"] == "sent"
    with pytest.raises(ReferentialError):
        create_doc("quotation", dict(quotation_payload, status="sent"))


# -----------------------------
# delete
# -----------------------------

def test_soft_delete_hides_the_document(conn, org, create_doc, quotation_payload):
    q = create_doc("quotation", quotation_payload)
    svc = DocumentService(conn, "quotation")
    svc.delete(org.organization_id, q["id"])
    assert svc.list_documents(org.organization_id) == []
    with pytest.raises(NotFoundError):
        svc.get(org.organization_id, q["id"])
    row = conn.execute("SELECT is_deleted FROM quotations WHERE id = ?", (q["id"],)).fetchone()
    assert row["is_deleted"] == 1


def test_sales_order_with_live_children_cannot_be_deleted(conn, org, create_doc, sales_order):
    do = create_doc("delivery_order", {"source_id": sales_order["id"]})
    so_svc = DocumentService(conn, "sales_order")
    with pytest.raises(PreconditionError) as exc:
        so_svc.delete(org.organization_id, sales_order["id"])
    assert exc.value.context == {"delivery_orders": 1, "invoices": 0}

    inv = create_doc("invoice", {"source_id": do["id"], "source_type": "delivery_order"})
    with pytest.raises(PreconditionError):
        DocumentService(conn, "delivery_order").delete(org.organization_id, do["id"])

    DocumentService(conn, "invoice").delete(org.organization_id, inv["id"])
    DocumentService(conn, "delivery_order").delete(org.organization_id, do["id"])
    so_svc.delete(org.organization_id, sales_order["id"])
    assert so_svc.list_documents(org.organization_id) == []


def test_unknown_document_type():
    with pytest.raises(ValidationError):
        DocumentService(None, "credit_note")
