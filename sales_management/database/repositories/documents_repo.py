from __future__ import annotations
from dataclasses import asdict, dataclass, field, fields
import sqlite3
from typing import Iterable, Optional

from ...constants import (
    CANCELLED_STATUS,
    DELIVERY_ORDER,
    DOCUMENT_TABLES,
    EXTRA_COLUMNS,
    ITEM_TABLES,
    PRICED_TYPES,
)
from ...errors import AuthorizationError, NotFoundError


@dataclass
class LineItem:
    product_id: int
    quantity: float
    product_name: str | None = None
    unit: str | None = None
    unit_price: float = 0.0
    discount_percent: float = 0.0
    discount_amount: float = 0.0
    subtotal: float = 0.0
    notes: str | None = None
    line_order: int = 0
    item_id: int | None = None

    def to_dict(self, priced: bool = True) -> dict:
        d = asdict(self)
        if not priced:
            for k in ("unit_price", "discount_percent", "discount_amount", "subtotal"):
                d.pop(k)
        return d


@dataclass
class DocumentHeader:
    """
    One header shape for every document type. Columns a type does not have
    (pricing on delivery orders, links on quotations, ...) stay None.
    """

    document_type: str
    customer_id: int
    status: str
    document_date: str
    code: str | None = None
    id: int | None = None
    organization_id: int | None = None
    sales_person_id: int | None = None
    notes: str | None = None
    # priced types
    discount_amount: float | None = None
    tax_rate: float | None = None
    subtotal: float | None = None
    tax_amount: float | None = None
    total_amount: float | None = None
    # per-type extras
    expiry_date: str | None = None
    converted_to_sales_order_id: int | None = None
    source_quotation_id: int | None = None
    technician_id: int | None = None
    sales_order_id: int | None = None
    delivery_order_id: int | None = None
    delivery_address: str | None = None
    due_date: str | None = None
    payment_terms: str | None = None
    # set by mark_delivered only
    delivered_at: str | None = None
    delivered_by_id: int | None = None
    is_deleted: bool = False
    created_at: str | None = None
    updated_at: str | None = None
    items: list[LineItem] = field(default_factory=list)

    @property
    def is_priced(self) -> bool:
        return self.document_type in PRICED_TYPES

    def to_dict(self) -> dict:
        """Only the columns that exist for this document type."""
        priced = self.is_priced
        out = {
            "id": self.id,
            "document_type": self.document_type,
            "organization_id": self.organization_id,
            "code": self.code,
            "status": self.status,
            "customer_id": self.customer_id,
            "sales_person_id": self.sales_person_id,
            "document_date": self.document_date,
            "notes": self.notes,
        }
        if priced:
            for k in ("discount_amount", "tax_rate", "subtotal", "tax_amount", "total_amount"):
                out[k] = getattr(self, k)
        for k in EXTRA_COLUMNS[self.document_type]:
            out[k] = getattr(self, k)
        if self.document_type == DELIVERY_ORDER:
            out["delivered_at"] = self.delivered_at
            out["delivered_by_id"] = self.delivered_by_id
        out["created_at"] = self.created_at
        out["updated_at"] = self.updated_at
        out["items"] = [it.to_dict(priced) for it in self.items]
        return out


_SHARED_COLUMNS = ("code", "status", "customer_id", "sales_person_id", "document_date", "notes")
_PRICE_COLUMNS = ("discount_amount", "tax_rate", "subtotal", "tax_amount", "total_amount")
_ITEM_PRICE_COLUMNS = ("unit_price", "discount_percent", "discount_amount", "subtotal")
_HEADER_FIELDS = {f.name for f in fields(DocumentHeader)}


class DocumentsRepo:
    """
    Headers and line items for one document type.

    Every type has its own header and item table with the same shared columns;
    the per-type column lists come from constants.EXTRA_COLUMNS. No validation
    happens here (see modules.documents.DocumentService).
    """

    def __init__(self, conn: sqlite3.Connection, document_type: str):
        conn.row_factory = sqlite3.Row
        self.conn = conn
        self.document_type = document_type
        self.table = DOCUMENT_TABLES[document_type]
        self.items_table = ITEM_TABLES[document_type]
        self.priced = document_type in PRICED_TYPES

    # ---- column lists -----------------------------------------------------

    def _header_columns(self) -> tuple[str, ...]:
        cols = _SHARED_COLUMNS
        if self.priced:
            cols += _PRICE_COLUMNS
        return cols + EXTRA_COLUMNS[self.document_type]

    def _item_columns(self) -> tuple[str, ...]:
        cols = ("line_order", "product_id", "product_name", "unit", "quantity")
        if self.priced:
            cols += _ITEM_PRICE_COLUMNS
        return cols + ("notes",)

    def _row_to_header(self, r: sqlite3.Row) -> DocumentHeader:
        data = {k: r[k] for k in r.keys() if k in _HEADER_FIELDS}
        for k in _PRICE_COLUMNS:
            if data.get(k) is not None:
                data[k] = float(data[k])
        data["is_deleted"] = bool(data.get("is_deleted"))
        return DocumentHeader(document_type=self.document_type, **data)

    def _row_to_item(self, r: sqlite3.Row) -> LineItem:
        data = {k: r[k] for k in r.keys() if k != "document_id"}
        data["quantity"] = float(data["quantity"])
        for k in _ITEM_PRICE_COLUMNS:
            if k in data:
                data[k] = float(data[k] or 0)
        return LineItem(**data)

    # ---- reads ------------------------------------------------------------

    def list_documents(
        self,
        organization_id: int,
        *,
        customer_id: int | None = None,
        sales_person_id: int | None = None,
        status: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        sales_order_id: int | None = None,
    ) -> list[DocumentHeader]:
        """Live (non-deleted) headers, newest first. Items are not loaded."""
        where = ["organization_id = ?", "is_deleted = 0"]
        params: list = [organization_id]

        if customer_id is not None:
            where.append("customer_id = ?")
            params.append(customer_id)
        if sales_person_id is not None:
            where.append("sales_person_id = ?")
            params.append(sales_person_id)
        if status:
            where.append("status = ?")
            params.append(status)
        if date_from:
            where.append("DATE(document_date) >= DATE(?)")
            params.append(date_from)
        if date_to:
            where.append("DATE(document_date) <= DATE(?)")
            params.append(date_to)
        if sales_order_id is not None and "sales_order_id" in EXTRA_COLUMNS[self.document_type]:
            where.append("sales_order_id = ?")
            params.append(sales_order_id)

        sql = f"SELECT * FROM {self.table} WHERE " + " AND ".join(where)
        sql += " ORDER BY DATE(document_date) DESC, id DESC"
        return [self._row_to_header(r) for r in self.conn.execute(sql, params).fetchall()]

    def get(self, document_id: int, *, with_items: bool = True, include_deleted: bool = False) -> Optional[DocumentHeader]:
        sql = f"SELECT * FROM {self.table} WHERE id = ?"
        if not include_deleted:
            sql += " AND is_deleted = 0"
        r = self.conn.execute(sql, (document_id,)).fetchone()
        if r is None:
            return None
        header = self._row_to_header(r)
        if with_items:
            header.items = self.list_items(document_id)
        return header

    def require(self, organization_id: int, document_id: int, *, with_items: bool = True) -> DocumentHeader:
        """get() for a caller scoped to one organization."""
        header = self.get(document_id, with_items=with_items)
        if header is None:
            raise NotFoundError(
                f"{self.document_type.replace('_', ' ').capitalize()} not found: {document_id}",
                context={"document_type": self.document_type, "id": document_id},
            )
        if header.organization_id != organization_id:
            raise AuthorizationError(
                f"{self.document_type.replace('_', ' ').capitalize()} {document_id} belongs to another organization.",
                context={"document_type": self.document_type, "id": document_id},
            )
        return header

    def list_items(self, document_id: int) -> list[LineItem]:
        rows = self.conn.execute(
            f"SELECT * FROM {self.items_table} WHERE document_id = ? ORDER BY line_order, item_id",
            (document_id,),
        ).fetchall()
        return [self._row_to_item(r) for r in rows]

    def code_exists(self, organization_id: int, code: str) -> bool:
        """Deleted rows count: the UNIQUE index covers them too."""
        r = self.conn.execute(
            f"SELECT 1 FROM {self.table} WHERE organization_id = ? AND code = ? LIMIT 1",
            (organization_id, code),
        ).fetchone()
        return r is not None

    def list_by_link(self, link_column: str, linked_id: int, *, exclude_cancelled: bool = False) -> list[DocumentHeader]:
        """Live documents of this type pointing at `linked_id` via `link_column`."""
        if link_column not in EXTRA_COLUMNS[self.document_type]:
            raise KeyError(f"{self.table} has no column {link_column}")
        sql = f"SELECT * FROM {self.table} WHERE {link_column} = ? AND is_deleted = 0"
        params: list = [linked_id]
        if exclude_cancelled:
            sql += " AND status <> ?"
            params.append(CANCELLED_STATUS)
        sql += " ORDER BY id"
        return [self._row_to_header(r) for r in self.conn.execute(sql, params).fetchall()]

    def delivered_quantities(self, sales_order_id: int, *, exclude_delivery_order_id: int | None = None) -> dict[int, float]:
        """
        product_id -> quantity delivered against a sales order, counting only
        live, non-cancelled delivery orders.
        """
        if self.document_type != DELIVERY_ORDER:
            raise ValueError("delivered_quantities is only defined for delivery orders")
        sql = """
            SELECT i.product_id, SUM(CAST(i.quantity AS REAL)) AS qty
              FROM delivery_order_items i
              JOIN delivery_orders d ON d.id = i.document_id
             WHERE d.sales_order_id = ?
               AND d.is_deleted = 0
               AND d.status <> ?
        """
        params: list = [sales_order_id, CANCELLED_STATUS]
        if exclude_delivery_order_id is not None:
            sql += " AND d.id <> ?"
            params.append(exclude_delivery_order_id)
        sql += " GROUP BY i.product_id"
        return {int(r["product_id"]): float(r["qty"] or 0.0) for r in self.conn.execute(sql, params).fetchall()}

    # ---- writes (callers hold a write_transaction) -----------------------

    def insert(self, header: DocumentHeader, items: Iterable[LineItem]) -> int:
        cols = ("organization_id",) + self._header_columns()
        values = [header.organization_id] + [getattr(header, c) for c in cols[1:]]
        cur = self.conn.execute(
            f"INSERT INTO {self.table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            values,
        )
        document_id = int(cur.lastrowid)
        self._insert_items(document_id, items)
        return document_id

    def update(self, document_id: int, header: DocumentHeader, items: Iterable[LineItem]) -> None:
        """Rewrite the header (code excluded) and replace every line."""
        cols = [c for c in self._header_columns() if c != "code"]
        assignments = ", ".join(f"{c} = ?" for c in cols)
        values = [getattr(header, c) for c in cols] + [document_id]
        self.conn.execute(
            f"UPDATE {self.table} SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            values,
        )
        self.conn.execute(f"DELETE FROM {self.items_table} WHERE document_id = ?", (document_id,))
        self._insert_items(document_id, items)

    def _insert_items(self, document_id: int, items: Iterable[LineItem]) -> None:
        cols = ("document_id",) + self._item_columns()
        sql = f"INSERT INTO {self.items_table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})"
        for index, it in enumerate(items):
            it.line_order = index
            self.conn.execute(sql, [document_id] + [getattr(it, c) for c in cols[1:]])

    def soft_delete(self, document_id: int) -> None:
        self.conn.execute(
            f"UPDATE {self.table} SET is_deleted = 1, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (document_id,),
        )

    def mark_delivered(self, document_id: int, status: str, delivered_by_id: int | None) -> None:
        self.conn.execute(
            """
            UPDATE delivery_orders
               SET status = ?, delivered_at = CURRENT_TIMESTAMP, delivered_by_id = ?,
                   updated_at = CURRENT_TIMESTAMP
             WHERE id = ?
            """,
            (status, delivered_by_id, document_id),
        )

    def mark_converted(self, quotation_id: int, sales_order_id: int) -> None:
        self.conn.execute(
            """
            UPDATE quotations
               SET converted_to_sales_order_id = ?, updated_at = CURRENT_TIMESTAMP
             WHERE id = ?
            """,
            (sales_order_id, quotation_id),
        )
