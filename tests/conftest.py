# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own SQLite file under tmp_path (schema applied on connect)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON (see get_connection)
# - One organization ("acme") seeded with default statuses + numbering settings
# - Handy product ids + a document factory fixture
# ---------------------------------------------------------------------

from __future__ import annotations

import sqlite3
from typing import Any, Callable

import pytest

from sales_management.database import get_connection
from sales_management.database.repositories.organizations_repo import Organization, OrganizationsRepo
from sales_management.modules.documents import DocumentService
from sales_management.modules.statuses import StatusRegistry


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "sales.db"


@pytest.fixture()
def conn(db_path):
    con = get_connection(db_path)
    try:
        yield con
    finally:
        con.close()


@pytest.fixture(autouse=True)
def _fresh_status_cache():
    StatusRegistry.invalidate()
    yield
    StatusRegistry.invalidate()


@pytest.fixture()
def org(conn: sqlite3.Connection) -> Organization:
    return OrganizationsRepo(conn).create("acme", "Acme Trading")


@pytest.fixture()
def other_org(conn: sqlite3.Connection) -> Organization:
    return OrganizationsRepo(conn).create("globex", "Globex")


@pytest.fixture()
def ids() -> dict[str, int]:
    return {"customer": 501, "sales_person": 7, "technician": 9, "prod_A": 1, "prod_B": 2, "prod_C": 3}


@pytest.fixture()
def create_doc(conn, org) -> Callable[..., dict]:
    """create_doc('quotation', {...}) -> stored document dict (warnings under 'warnings')."""

    def _create(document_type: str, payload: dict[str, Any], organization: Organization | None = None) -> dict:
        target = organization or org
        doc, warnings = DocumentService(conn, document_type).create(target.organization_id, payload)
        doc["warnings"] = warnings
        return doc

    return _create


@pytest.fixture()
def quotation_payload(ids) -> dict[str, Any]:
    """A x3 @ 10 + B x2 @ 5 -> subtotal 40.00"""
    return {
        "customer_id": ids["customer"],
        "sales_person_id": ids["sales_person"],
        "notes": "first offer",
        "items": [
            {"product_id": ids["prod_A"], "product_name": "Widget A", "unit": "pc", "quantity": 3, "unit_price": 10},
            {"product_id": ids["prod_B"], "product_name": "Widget B", "unit": "pc", "quantity": 2, "unit_price": 5},
        ],
    }


@pytest.fixture()
def sales_order(create_doc, ids) -> dict:
    """SO with product A x10 @ 12 and B x4 @ 20, no quotation."""
    return create_doc(
        "sales_order",
        {
            "customer_id": ids["customer"],
            "technician_id": ids["technician"],
            "items": [
                {"product_id": ids["prod_A"], "product_name": "Widget A", "unit": "pc", "quantity": 10, "unit_price": 12},
                {"product_id": ids["prod_B"], "product_name": "Widget B", "unit": "pc", "quantity": 4, "unit_price": 20},
            ],
        },
    )
