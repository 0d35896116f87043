# tests/test_database.py
import sqlite3

import pytest

from sales_management.constants import SCHEMA_VERSION
from sales_management.database import get_connection, write_transaction
from sales_management.database.versioning import ensure_current_version, get_current_version, stamp_version


def test_fresh_database_is_stamped(conn):
    assert get_current_version(conn) == SCHEMA_VERSION


def test_older_stamp_moves_forward_newer_is_kept(conn):
    stamp_version(conn, "0.9.0")
    assert ensure_current_version(conn) == SCHEMA_VERSION
    stamp_version(conn, "99.0.0")
    assert ensure_current_version(conn) == "99.0.0"
    conn.commit()


def test_reconnect_is_idempotent(db_path, org):
    again = get_connection(db_path)
    try:
        n = again.execute("SELECT COUNT(*) AS n FROM organizations").fetchone()["n"]
        assert n == 1
    finally:
        again.close()


def test_write_transaction_rolls_back_and_joins(conn, org):
    with pytest.raises(RuntimeError):
        with write_transaction(conn):
            conn.execute("UPDATE organizations SET name = 'Changed' WHERE organization_id = ?", (org.organization_id,))
            raise RuntimeError("boom")
    assert conn.execute("SELECT name FROM organizations").fetchone()["name"] == "Acme Trading"

    with write_transaction(conn):
        with write_transaction(conn):
            conn.execute("UPDATE organizations SET name = 'Inner' WHERE organization_id = ?", (org.organization_id,))
        assert conn.in_transaction
    assert not conn.in_transaction


def test_older_database_gains_the_delivery_columns(db_path):
    # a 1.0.0 file: delivery_orders without delivered_at / delivered_by_id
    raw = sqlite3.connect(str(db_path))
    raw.executescript(
        """
        CREATE TABLE delivery_orders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            organization_id INTEGER NOT NULL,
            code TEXT NOT NULL,
            status TEXT NOT NULL,
            customer_id INTEGER NOT NULL,
            sales_person_id INTEGER,
            technician_id INTEGER,
            sales_order_id INTEGER,
            document_date DATE NOT NULL DEFAULT CURRENT_DATE,
            delivery_address TEXT,
            notes TEXT,
            is_deleted INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (organization_id, code)
        );
        CREATE TABLE schema_version (id INTEGER PRIMARY KEY CHECK (id=1), version TEXT NOT NULL);
        INSERT INTO schema_version (id, version) VALUES (1, '1.0.0');
        """
    )
    raw.close()

    upgraded = get_connection(db_path)
    try:
        cols = {r["name"] for r in upgraded.execute("PRAGMA table_info(delivery_orders)").fetchall()}
        assert {"delivered_at", "delivered_by_id"} <= cols
        assert get_current_version(upgraded) == SCHEMA_VERSION
    finally:
        upgraded.close()
