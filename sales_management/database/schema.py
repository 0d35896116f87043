from pathlib import Path
import sqlite3
import sys

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== SCOPE ======================== */

CREATE TABLE IF NOT EXISTS organizations (
    organization_id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug            TEXT UNIQUE NOT NULL,
    name            TEXT NOT NULL,
    created_at      TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

/* ======================== CONFIGURATION ======================== */

/* -------- workflow statuses (one registry per org + document type) -------- */
CREATE TABLE IF NOT EXISTS status_definitions (
    status_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    organization_id     INTEGER NOT NULL,
    document_type       TEXT NOT NULL CHECK (document_type IN ('quotation','sales_order','delivery_order','invoice')),
    status_key          TEXT NOT NULL,
    status_label        TEXT NOT NULL CHECK (length(trim(status_label)) > 0),
    status_color        TEXT NOT NULL DEFAULT '#3B82F6',
    sort_order          INTEGER NOT NULL DEFAULT 0,
    is_active           INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    is_completed_status INTEGER NOT NULL DEFAULT 0 CHECK (is_completed_status IN (0,1)),
    UNIQUE (organization_id, document_type, status_key),
    FOREIGN KEY (organization_id) REFERENCES organizations(organization_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_status_definitions_scope
ON status_definitions(organization_id, document_type, sort_order);

/* at most one completion status per registry (exactly-one is checked in the repo) */
CREATE UNIQUE INDEX IF NOT EXISTS idx_status_definitions_one_completed
ON status_definitions(organization_id, document_type) WHERE is_completed_status = 1;

/* bumped on every registry write; lookups are cached per version */
CREATE TABLE IF NOT EXISTS status_registry_versions (
    organization_id INTEGER NOT NULL,
    document_type   TEXT NOT NULL,
    version         INTEGER NOT NULL DEFAULT 0,
    updated_at      TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (organization_id, document_type),
    FOREIGN KEY (organization_id) REFERENCES organizations(organization_id) ON DELETE CASCADE
);

/* -------- numbering settings -------- */
CREATE TABLE IF NOT EXISTS document_settings (
    organization_id  INTEGER NOT NULL,
    document_type    TEXT NOT NULL CHECK (document_type IN ('quotation','sales_order','delivery_order','invoice')),
    format_template  TEXT NOT NULL,
    reset_period     TEXT NOT NULL DEFAULT 'monthly' CHECK (reset_period IN ('never','daily','monthly','yearly')),
    default_tax_rate NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(default_tax_rate AS REAL) BETWEEN 0 AND 100),
    current_counter  INTEGER NOT NULL DEFAULT 0 CHECK (current_counter >= 0),
    last_reset_date  DATE,
    PRIMARY KEY (organization_id, document_type),
    FOREIGN KEY (organization_id) REFERENCES organizations(organization_id) ON DELETE CASCADE
);

/* ======================== DOCUMENTS: HEADERS ======================== */

CREATE TABLE IF NOT EXISTS quotations (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    organization_id INTEGER NOT NULL,
    code            TEXT NOT NULL,
    status          TEXT NOT NULL,
    customer_id     INTEGER NOT NULL,
    sales_person_id INTEGER,
    document_date   DATE NOT NULL DEFAULT CURRENT_DATE,
    expiry_date     DATE,
    notes           TEXT,
    discount_amount NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_amount AS REAL) >= 0),
    tax_rate        NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(tax_rate AS REAL) BETWEEN 0 AND 100),
    subtotal        NUMERIC NOT NULL DEFAULT 0,
    tax_amount      NUMERIC NOT NULL DEFAULT 0,
    total_amount    NUMERIC NOT NULL DEFAULT 0,
    converted_to_sales_order_id INTEGER,
    is_deleted      INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0,1)),
    created_at      TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at      TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (organization_id, code),
    FOREIGN KEY (organization_id) REFERENCES organizations(organization_id)
);
CREATE INDEX IF NOT EXISTS idx_quotations_org_date ON quotations(organization_id, document_date);

CREATE TABLE IF NOT EXISTS sales_orders (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    organization_id INTEGER NOT NULL,
    code            TEXT NOT NULL,
    status          TEXT NOT NULL,
    customer_id     INTEGER NOT NULL,
    sales_person_id INTEGER,
    technician_id   INTEGER,
    document_date   DATE NOT NULL DEFAULT CURRENT_DATE,
    notes           TEXT,
    discount_amount NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_amount AS REAL) >= 0),
    tax_rate        NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(tax_rate AS REAL) BETWEEN 0 AND 100),
    subtotal        NUMERIC NOT NULL DEFAULT 0,
    tax_amount      NUMERIC NOT NULL DEFAULT 0,
    total_amount    NUMERIC NOT NULL DEFAULT 0,
    source_quotation_id INTEGER,
    is_deleted      INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0,1)),
    created_at      TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at      TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (organization_id, code),
    FOREIGN KEY (organization_id)     REFERENCES organizations(organization_id),
    FOREIGN KEY (source_quotation_id) REFERENCES quotations(id)
);
CREATE INDEX IF NOT EXISTS idx_sales_orders_org_date ON sales_orders(organization_id, document_date);
CREATE INDEX IF NOT EXISTS idx_sales_orders_quotation ON sales_orders(source_quotation_id);

/* delivery orders carry quantities only: no prices, no totals */
CREATE TABLE IF NOT EXISTS delivery_orders (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    organization_id  INTEGER NOT NULL,
    code             TEXT NOT NULL,
    status           TEXT NOT NULL,
    customer_id      INTEGER NOT NULL,
    sales_person_id  INTEGER,
    technician_id    INTEGER,
    sales_order_id   INTEGER,
    document_date    DATE NOT NULL DEFAULT CURRENT_DATE,
    delivery_address TEXT,
    notes            TEXT,
    delivered_at     TIMESTAMP,
    delivered_by_id  INTEGER,
    is_deleted       INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0,1)),
    created_at       TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at       TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (organization_id, code),
    FOREIGN KEY (organization_id) REFERENCES organizations(organization_id),
    FOREIGN KEY (sales_order_id)  REFERENCES sales_orders(id)
);
CREATE INDEX IF NOT EXISTS idx_delivery_orders_so ON delivery_orders(sales_order_id);

CREATE TABLE IF NOT EXISTS invoices (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    organization_id   INTEGER NOT NULL,
    code              TEXT NOT NULL,
    status            TEXT NOT NULL,
    customer_id       INTEGER NOT NULL,
    sales_person_id   INTEGER,
    sales_order_id    INTEGER,
    delivery_order_id INTEGER,
    document_date     DATE NOT NULL DEFAULT CURRENT_DATE,
    due_date          DATE,
    payment_terms     TEXT,
    notes             TEXT,
    discount_amount   NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_amount AS REAL) >= 0),
    tax_rate          NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(tax_rate AS REAL) BETWEEN 0 AND 100),
    subtotal          NUMERIC NOT NULL DEFAULT 0,
    tax_amount        NUMERIC NOT NULL DEFAULT 0,
    total_amount      NUMERIC NOT NULL DEFAULT 0,
    is_deleted        INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0,1)),
    created_at        TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at        TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (organization_id, code),
    FOREIGN KEY (organization_id)   REFERENCES organizations(organization_id),
    FOREIGN KEY (sales_order_id)    REFERENCES sales_orders(id),
    FOREIGN KEY (delivery_order_id) REFERENCES delivery_orders(id)
);
CREATE INDEX IF NOT EXISTS idx_invoices_so ON invoices(sales_order_id);
CREATE INDEX IF NOT EXISTS idx_invoices_do ON invoices(delivery_order_id);

/* ======================== DOCUMENTS: LINES ======================== */

CREATE TABLE IF NOT EXISTS quotation_items (
    item_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id      INTEGER NOT NULL,
    line_order       INTEGER NOT NULL,
    product_id       INTEGER NOT NULL,
    product_name     TEXT,
    unit             TEXT,
    quantity         NUMERIC NOT NULL CHECK (CAST(quantity AS REAL) > 0),
    unit_price       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(unit_price AS REAL) >= 0),
    discount_percent NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_percent AS REAL) BETWEEN 0 AND 100),
    discount_amount  NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_amount AS REAL) >= 0),
    subtotal         NUMERIC NOT NULL DEFAULT 0,
    notes            TEXT,
    FOREIGN KEY (document_id) REFERENCES quotations(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_quotation_items_doc ON quotation_items(document_id, line_order);

CREATE TABLE IF NOT EXISTS sales_order_items (
    item_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id      INTEGER NOT NULL,
    line_order       INTEGER NOT NULL,
    product_id       INTEGER NOT NULL,
    product_name     TEXT,
    unit             TEXT,
    quantity         NUMERIC NOT NULL CHECK (CAST(quantity AS REAL) > 0),
    unit_price       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(unit_price AS REAL) >= 0),
    discount_percent NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_percent AS REAL) BETWEEN 0 AND 100),
    discount_amount  NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_amount AS REAL) >= 0),
    subtotal         NUMERIC NOT NULL DEFAULT 0,
    notes            TEXT,
    FOREIGN KEY (document_id) REFERENCES sales_orders(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_sales_order_items_doc ON sales_order_items(document_id, line_order);

CREATE TABLE IF NOT EXISTS delivery_order_items (
    item_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id  INTEGER NOT NULL,
    line_order   INTEGER NOT NULL,
    product_id   INTEGER NOT NULL,
    product_name TEXT,
    unit         TEXT,
    quantity     NUMERIC NOT NULL CHECK (CAST(quantity AS REAL) > 0),
    notes        TEXT,
    FOREIGN KEY (document_id) REFERENCES delivery_orders(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_delivery_order_items_doc ON delivery_order_items(document_id, line_order);

CREATE TABLE IF NOT EXISTS invoice_items (
    item_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id      INTEGER NOT NULL,
    line_order       INTEGER NOT NULL,
    product_id       INTEGER NOT NULL,
    product_name     TEXT,
    unit             TEXT,
    quantity         NUMERIC NOT NULL CHECK (CAST(quantity AS REAL) > 0),
    unit_price       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(unit_price AS REAL) >= 0),
    discount_percent NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_percent AS REAL) BETWEEN 0 AND 100),
    discount_amount  NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_amount AS REAL) >= 0),
    subtotal         NUMERIC NOT NULL DEFAULT 0,
    notes            TEXT,
    FOREIGN KEY (document_id) REFERENCES invoices(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_invoice_items_doc ON invoice_items(document_id, line_order);

/* ======================== PAYMENTS ======================== */

/* no UPDATE path: a correction is delete + re-add */
CREATE TABLE IF NOT EXISTS invoice_payments (
    payment_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id       INTEGER NOT NULL,
    payment_date     DATE NOT NULL DEFAULT CURRENT_DATE,
    amount           NUMERIC NOT NULL CHECK (CAST(amount AS REAL) > 0),
    method           TEXT NOT NULL CHECK (method IN ('cash','bank_transfer','cheque','card','other')),
    reference_number TEXT,
    notes            TEXT,
    created_at       TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_invoice_payments_invoice ON invoice_payments(invoice_id);

DROP TRIGGER IF EXISTS trg_invoice_payments_no_update;
CREATE TRIGGER trg_invoice_payments_no_update
BEFORE UPDATE ON invoice_payments
BEGIN
  SELECT RAISE(ABORT, 'Payments cannot be edited; delete and re-add instead');
END;
"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Idempotent: CREATE ... IF NOT EXISTS / DROP TRIGGER IF EXISTS."""
    conn.executescript(SQL)


def init_schema(db_path: Path | str) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[1] / "data" / "sales.db"
    init_schema(target)
    print(f"✓ DB applied to {target}")
