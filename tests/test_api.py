# tests/test_api.py
import pytest
from fastapi.testclient import TestClient

from sales_management.api.app import create_app


@pytest.fixture()
def client(tmp_path):
    app = create_app(tmp_path / "api.db")
    with TestClient(app) as c:
        r = c.post("/organizations", json={"slug": "acme", "name": "Acme Trading"})
        assert r.status_code == 201
        yield c


BASE = "/organizations/acme"


def _so_body():
    return {
        "customer_id": 501,
        "items": [
            {"product_id": 1, "product_name": "Widget A", "quantity": 10, "unit_price": 12},
            {"product_id": 2, "product_name": "Widget B", "quantity": 4, "unit_price": 20},
        ],
    }


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_organization_errors(client):
    assert client.get("/organizations/nobody").status_code == 404
    r = client.post("/organizations", json={"slug": "acme", "name": "Again"})
    assert r.status_code == 400
    assert r.json()["field"] == "slug"


def test_document_lifecycle(client):
    r = client.post(f"{BASE}/quotations", json={
        "customer_id": 501,
        "items": [
            {"product_id": 1, "quantity": 3, "unit_price": 10},
            {"product_id": 2, "quantity": 2, "unit_price": 5},
        ],
    })
    assert r.status_code == 201
    q = r.json()
    assert q["subtotal"] == 40.0
    assert q["warnings"] == []

    r = client.post(f"{BASE}/sales_orders/draft", json={"source_id": q["id"]})
    assert r.status_code == 200
    assert r.json()["header"]["source_quotation_id"] == q["id"]

    r = client.post(f"{BASE}/sales_orders", json={"source_id": q["id"]})
    assert r.status_code == 201
    so = r.json()
    assert so["source_quotation_id"] == q["id"]

    assert client.post(f"{BASE}/sales_orders", json={"source_id": q["id"]}).status_code == 409

    listed = client.get(f"{BASE}/sales_orders").json()
    assert listed["count"] == 1
    assert client.get(f"{BASE}/sales_order/{so['id']}").json()["code"] == so["code"]


def test_error_status_codes(client):
    r = client.post(f"{BASE}/quotations", json={"customer_id": 501, "items": []})
    assert r.status_code == 400
    assert r.json() == {"error": "A document needs at least one line item.", "field": "items"}

    r = client.post(f"{BASE}/quotations", json={"customer_id": 501, "status": "won", "items": [{"product_id": 1, "quantity": 1}]})
    assert r.status_code == 422
    assert r.json()["field"] == "status"

    assert client.get(f"{BASE}/quotations/999").status_code == 404
    assert client.get(f"{BASE}/credit_notes").status_code == 404


def test_request_shape_errors_name_the_field(client):
    r = client.post(f"{BASE}/quotations", json={"customer_id": 501, "items": [{"product_id": 1, "quantity": "lots"}]})
    assert r.status_code == 400
    assert r.json()["field"] == "items[0].quantity"


def test_cross_organization_access_is_forbidden(client):
    client.post("/organizations", json={"slug": "globex", "name": "Globex"})
    q = client.post(f"{BASE}/quotations", json={"customer_id": 1, "items": [{"product_id": 1, "quantity": 1}]}).json()
    assert client.get(f"/organizations/globex/quotations/{q['id']}").status_code == 403


def test_delivery_summary_and_over_delivery(client):
    so = client.post(f"{BASE}/sales_orders", json=_so_body()).json()
    r = client.post(f"{BASE}/delivery_orders", json={
        "customer_id": 501,
        "sales_order_id": so["id"],
        "items": [{"product_id": 1, "quantity": 4}],
    })
    assert r.status_code == 201

    summary = client.get(f"{BASE}/sales_orders/{so['id']}/delivery_summary").json()
    row_a = summary["rows"][0]
    assert (row_a["delivered_qty"], row_a["remaining_qty"], row_a["delivery_percentage"]) == (4, 6, 40.0)
    assert summary["selectable_product_ids"] == [1, 2]

    r = client.post(f"{BASE}/delivery_orders", json={
        "customer_id": 501,
        "sales_order_id": so["id"],
        "items": [{"product_id": 1, "quantity": 7}],
    })
    assert r.status_code == 409
    body = r.json()
    assert body["error"] == "quantity 7 for product 1 exceeds remaining quantity of 6"
    assert body["field"] == "items[0].quantity"
    assert body["context"]["remaining_qty"] == 6

    r = client.post(f"{BASE}/delivery_orders", json={
        "customer_id": 501,
        "sales_order_id": so["id"],
        "items": [{"product_id": 3, "quantity": 1}],
    })
    assert r.status_code == 422


def test_mark_delivered_route(client):
    so = client.post(f"{BASE}/sales_orders", json=_so_body()).json()
    first = client.post(f"{BASE}/delivery_orders", json={
        "customer_id": 501,
        "sales_order_id": so["id"],
        "items": [{"product_id": 1, "quantity": 4}],
    }).json()
    second = client.post(f"{BASE}/delivery_orders", json={
        "customer_id": 501,
        "sales_order_id": so["id"],
        "items": [{"product_id": 2, "quantity": 1}],
    }).json()

    r = client.post(f"{BASE}/delivery_orders/{first['id']}/mark-delivered", json={"delivered_by_id": 9})
    assert r.status_code == 200
    body = r.json()
    assert (body["status"], body["delivered_by_id"]) == ("delivered", 9)
    assert body["delivered_at"]

    assert client.post(f"{BASE}/delivery_orders/{first['id']}/mark-delivered").status_code == 409

    r = client.post(f"{BASE}/delivery_orders/{second['id']}/mark-delivered")
    assert r.status_code == 200
    assert r.json()["delivered_by_id"] is None

    assert client.post(f"{BASE}/delivery_orders/999/mark-delivered").status_code == 404


def test_payments_round_trip(client):
    so = client.post(f"{BASE}/sales_orders", json=_so_body()).json()
    inv = client.post(f"{BASE}/invoices", json={"source_id": so["id"], "source_type": "sales_order"}).json()
    url = f"{BASE}/invoices/{inv['id']}/payments"

    r = client.post(url, json={"amount": 150, "method": "cash"})
    assert r.status_code == 201
    assert r.json()["summary"]["amount_due"] == 50.0

    r = client.post(url, json={"amount": 100, "method": "card"})
    body = r.json()
    assert body["summary"]["amount_due"] == -50.0
    assert body["summary"]["is_overpaid"] is True
    assert body["warnings"]

    payment_id = body["payment"]["payment_id"]
    r = client.delete(f"{url}/{payment_id}")
    assert r.status_code == 200
    assert r.json()["summary"]["amount_paid"] == 150.0

    assert client.post(url, json={"amount": 0, "method": "cash"}).status_code == 400
    assert client.delete(f"{url}/99999").status_code == 404
    assert client.delete(f"{BASE}/invoices/{inv['id']}").status_code == 409

    listed = client.get(url).json()
    assert len(listed["payments"]) == 1
    assert client.get(f"{BASE}/invoices/{inv['id']}/payment_summary").json()["payment_state"] == "partial"


def test_status_and_settings_routes(client):
    r = client.get(f"{BASE}/statuses/sales_orders")
    assert r.status_code == 200
    body = r.json()
    assert body["completed_status"] == "delivered"

    r = client.put(f"{BASE}/statuses/sales_orders/completed/shipped")
    assert r.status_code == 200
    assert r.json()["completed_status"] == "shipped"
    assert r.json()["version"] > body["version"]

    r = client.put(f"{BASE}/statuses/invoices", json={"statuses": []})
    assert r.status_code == 400

    r = client.put(f"{BASE}/settings/invoices", json={"format_template": "INV-{YYYY}-{4digits}", "reset_period": "yearly"})
    assert r.status_code == 200
    assert r.json()["format_template"] == "INV-{YYYY}-{4digits}"

    r = client.put(f"{BASE}/settings/invoices", json={"format_template": "INV-{YYYY}"})
    assert r.status_code == 400
    assert r.json()["field"] == "format_template"

    r = client.post("/numbering/preview", json={"template": "SO-{YYMM}-{5digits}", "counter": 12, "date": "2025-12-01"})
    assert r.json() == {"preview": "SO-2512-00012"}
