# tests/test_conversion.py
import pytest

from sales_management.errors import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from sales_management.modules.conversion import ConversionPipeline
from sales_management.modules.documents import DocumentService


def test_quotation_to_sales_order_copies_lines(conn, org, create_doc, quotation_payload):
    q = create_doc("quotation", dict(quotation_payload, tax_rate=10, discount_amount=2))
    assert q["subtotal"] == 40.00

    draft = ConversionPipeline(conn).convert(org.organization_id, "quotation", q["id"], "sales_order")
    assert draft.header["source_quotation_id"] == q["id"]
    assert draft.header["status"] == "draft"
    assert draft.header["customer_id"] == q["customer_id"]
    assert draft.header["tax_rate"] == 10
    assert draft.header["discount_amount"] == 2
    assert [(it["product_id"], it["quantity"], it["unit_price"]) for it in draft.items] == [(1, 3, 10), (2, 2, 5)]
    assert not draft.needs_pricing

    so = create_doc("sales_order", {"source_id": q["id"]})
    assert so["subtotal"] == 40.00
    assert so["tax_amount"] == 4.00
    assert so["total_amount"] == 42.00
    assert so["source_quotation_id"] == q["id"]
    assert [(it["product_id"], it["product_name"], it["quantity"], it["unit_price"], it["subtotal"]) for it in so["items"]] == [
        (1, "Widget A", 3, 10, 30.0),
        (2, "Widget B", 2, 5, 10.0),
    ]

    q_after = DocumentService(conn, "quotation").get(org.organization_id, q["id"])
    assert q_after["converted_to_sales_order_id"] == so["id"]


def test_quotation_conversion_is_locked_while_the_order_is_live(conn, org, create_doc, quotation_payload):
    q = create_doc("quotation", quotation_payload)
    so = create_doc("sales_order", {"source_id": q["id"]})

    with pytest.raises(PreconditionError):
        create_doc("sales_order", {"source_id": q["id"]})

    # cancelling the first order releases the quotation
    DocumentService(conn, "sales_order").update(
        org.organization_id, so["id"], {"customer_id": so["customer_id"], "status": "cancelled", "items": so["items"]}
    )
    again = create_doc("sales_order", {"source_id": q["id"]})
    assert again["source_quotation_id"] == q["id"]


@pytest.mark.parametrize("status", ["rejected", "expired"])
def test_rejected_or_expired_quotation_is_not_convertible(conn, org, create_doc, quotation_payload, status):
    q = create_doc("quotation", dict(quotation_payload, status=status))
    with pytest.raises(PreconditionError) as exc:
        ConversionPipeline(conn).convert(org.organization_id, "quotation", q["id"], "sales_order")
    assert exc.value.context["status"] == status


def test_unsupported_edges_are_rejected(conn, org, create_doc, quotation_payload):
    q = create_doc("quotation", quotation_payload)
    pipeline = ConversionPipeline(conn)
    with pytest.raises(ValidationError):
        pipeline.convert(org.organization_id, "quotation", q["id"], "delivery_order")
    with pytest.raises(ValidationError):
        pipeline.convert(org.organization_id, "quotation", q["id"], "invoice")
    with pytest.raises(ValidationError):
        DocumentService(conn, "quotation").draft(org.organization_id, q["id"])


def test_missing_and_foreign_sources(conn, org, other_org, create_doc, quotation_payload):
    pipeline = ConversionPipeline(conn)
    with pytest.raises(NotFoundError):
        pipeline.convert(org.organization_id, "quotation", 9999, "sales_order")

    foreign = create_doc("quotation", quotation_payload, other_org)
    with pytest.raises(AuthorizationError):
        pipeline.convert(org.organization_id, "quotation", foreign["id"], "sales_order")


def test_sales_order_to_delivery_defaults_to_remaining(conn, org, create_doc, sales_order):
    create_doc("delivery_order", {
        "customer_id": sales_order["customer_id"],
        "sales_order_id": sales_order["id"],
        "items": [{"product_id": 1, "quantity": 4}, {"product_id": 2, "quantity": 4}],
    })

    draft = ConversionPipeline(conn).convert(org.organization_id, "sales_order", sales_order["id"], "delivery_order")
    # product 2 is fully delivered and left out
    assert draft.items == [{"product_id": 1, "product_name": "Widget A", "unit": "pc", "quantity": 6}]
    assert draft.header["sales_order_id"] == sales_order["id"]
    assert draft.header["technician_id"] == sales_order["technician_id"]
    assert "unit_price" not in draft.items[0]


def test_fully_delivered_order_cannot_spawn_a_delivery(conn, org, create_doc, sales_order):
    create_doc("delivery_order", {"source_id": sales_order["id"]})
    with pytest.raises(PreconditionError, match="fully delivered"):
        create_doc("delivery_order", {"source_id": sales_order["id"]})


def test_cancelled_sales_order_is_not_convertible(conn, org, create_doc, sales_order):
    DocumentService(conn, "sales_order").update(
        org.organization_id,
        sales_order["id"],
        {"customer_id": sales_order["customer_id"], "status": "cancelled", "items": sales_order["items"]},
    )
    with pytest.raises(PreconditionError):
        ConversionPipeline(conn).convert(org.organization_id, "sales_order", sales_order["id"], "invoice")


def test_invoice_from_sales_order_keeps_pricing(conn, org, create_doc, sales_order):
    inv = create_doc("invoice", {"source_id": sales_order["id"], "source_type": "sales_order"})
    assert inv["sales_order_id"] == sales_order["id"]
    assert inv["total_amount"] == sales_order["total_amount"] == 200.00
    assert inv["warnings"] == []


def test_invoice_from_delivery_order_needs_pricing(conn, org, create_doc, sales_order):
    do = create_doc("delivery_order", {
        "customer_id": sales_order["customer_id"],
        "sales_order_id": sales_order["id"],
        "items": [{"product_id": 1, "quantity": 2}],
    })
    draft = DocumentService(conn, "invoice").draft(org.organization_id, do["id"], "delivery_order")
    assert draft.needs_pricing is True
    assert draft.warnings
    assert draft.header["sales_order_id"] == sales_order["id"]
    assert draft.header["delivery_order_id"] == do["id"]
    assert draft.items[0]["unit_price"] == 0.0

    priced = create_doc("invoice", {
        "source_id": do["id"],
        "source_type": "delivery_order",
        "items": [{"product_id": 1, "quantity": 2, "unit_price": 12}],
    })
    assert priced["total_amount"] == 24.00
    assert priced["delivery_order_id"] == do["id"]
    assert priced["sales_order_id"] == sales_order["id"]


def test_draft_does_not_persist(conn, org, create_doc, quotation_payload):
    q = create_doc("quotation", quotation_payload)
    DocumentService(conn, "sales_order").draft(org.organization_id, q["id"])
    assert DocumentService(conn, "sales_order").list_documents(org.organization_id) == []
    assert DocumentService(conn, "quotation").get(org.organization_id, q["id"])["converted_to_sales_order_id"] is None
