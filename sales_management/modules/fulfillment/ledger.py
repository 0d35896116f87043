from __future__ import annotations

from dataclasses import asdict, dataclass
import sqlite3
from typing import Iterable, Optional

from ...constants import DELIVERY_ORDER, QTY_EPSILON, SALES_ORDER
from ...database.repositories.documents_repo import DocumentsRepo, LineItem
from ...errors import PreconditionError, ReferentialError
from ...utils.helpers import fmt_qty, round_qty

PENDING = "pending"
PARTIAL = "partial"
DELIVERED = "delivered"


@dataclass
class FulfillmentRow:
    product_id: int
    product_name: Optional[str]
    unit: Optional[str]
    ordered_qty: float
    delivered_qty: float
    remaining_qty: float
    delivery_percentage: float
    delivery_status: str

    @property
    def is_fully_delivered(self) -> bool:
        return self.delivery_status == DELIVERED

    def to_dict(self) -> dict:
        d = asdict(self)
        d["is_fully_delivered"] = self.is_fully_delivered
        return d


def _delivery_status(ordered: float, delivered: float) -> str:
    if ordered - delivered <= QTY_EPSILON:
        return DELIVERED
    if delivered > QTY_EPSILON:
        return PARTIAL
    return PENDING


class FulfillmentLedger:
    """
    Ordered vs delivered quantities per product of a sales order.

    Nothing is stored: every call re-reads the order lines and the live,
    non-cancelled delivery orders that reference it.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.orders = DocumentsRepo(conn, SALES_ORDER)
        self.deliveries = DocumentsRepo(conn, DELIVERY_ORDER)

    def summarize(
        self,
        organization_id: int,
        sales_order_id: int,
        *,
        exclude_delivery_order_id: int | None = None,
    ) -> list[FulfillmentRow]:
        order = self.orders.require(organization_id, sales_order_id)
        return self._rows(order.items, sales_order_id, exclude_delivery_order_id)

    def _rows(
        self,
        order_items: Iterable[LineItem],
        sales_order_id: int,
        exclude_delivery_order_id: int | None,
    ) -> list[FulfillmentRow]:
        # one row per product, first-seen line order kept
        ordered: dict[int, list] = {}
        for it in order_items:
            if it.product_id in ordered:
                ordered[it.product_id][2] += it.quantity
            else:
                ordered[it.product_id] = [it.product_name, it.unit, it.quantity]

        delivered = self.deliveries.delivered_quantities(
            sales_order_id, exclude_delivery_order_id=exclude_delivery_order_id
        )

        rows: list[FulfillmentRow] = []
        for product_id, (name, unit, qty) in ordered.items():
            qty = round_qty(qty)
            done = round_qty(delivered.get(product_id, 0.0))
            rows.append(
                FulfillmentRow(
                    product_id=product_id,
                    product_name=name,
                    unit=unit,
                    ordered_qty=qty,
                    delivered_qty=done,
                    remaining_qty=round_qty(qty - done),
                    delivery_percentage=round(done / qty * 100.0, 2) if qty > 0 else 0.0,
                    delivery_status=_delivery_status(qty, done),
                )
            )
        return rows

    def remaining_by_product(
        self,
        organization_id: int,
        sales_order_id: int,
        *,
        exclude_delivery_order_id: int | None = None,
    ) -> dict[int, float]:
        return {
            r.product_id: r.remaining_qty
            for r in self.summarize(
                organization_id, sales_order_id, exclude_delivery_order_id=exclude_delivery_order_id
            )
        }

    def selectable(self, organization_id: int, sales_order_id: int) -> list[FulfillmentRow]:
        """Rows a new delivery order can still draw from."""
        return [r for r in self.summarize(organization_id, sales_order_id) if not r.is_fully_delivered]

    @staticmethod
    def totals(rows: Iterable[FulfillmentRow]) -> dict[str, float]:
        rows = list(rows)
        ordered = round_qty(sum(r.ordered_qty for r in rows))
        delivered = round_qty(sum(r.delivered_qty for r in rows))
        return {
            "ordered_qty": ordered,
            "delivered_qty": delivered,
            "remaining_qty": round_qty(sum(r.remaining_qty for r in rows)),
            "delivery_percentage": round(delivered / ordered * 100.0, 2) if ordered > 0 else 0.0,
        }

    def assert_within_remaining(
        self,
        organization_id: int,
        sales_order_id: int,
        lines: Iterable[LineItem],
        *,
        exclude_delivery_order_id: int | None = None,
    ) -> None:
        """
        Reject a delivery whose lines exceed what is left on the order.
        Call inside the write transaction that stores the delivery.
        """
        remaining = self.remaining_by_product(
            organization_id, sales_order_id, exclude_delivery_order_id=exclude_delivery_order_id
        )

        requested: dict[int, float] = {}
        first_index: dict[int, int] = {}
        for index, it in enumerate(lines):
            if it.product_id not in remaining:
                raise ReferentialError(
                    f"Product {it.product_id} is not on sales order {sales_order_id}.",
                    field=f"items[{index}].product_id",
                    context={"product_id": it.product_id, "sales_order_id": sales_order_id},
                )
            requested[it.product_id] = requested.get(it.product_id, 0.0) + it.quantity
            first_index.setdefault(it.product_id, index)

        for product_id, qty in requested.items():
            qty = round_qty(qty)
            ceiling = remaining[product_id]
            if qty - ceiling > QTY_EPSILON:
                raise PreconditionError(
                    f"quantity {fmt_qty(qty)} for product {product_id} exceeds remaining quantity of {fmt_qty(max(ceiling, 0.0))}",
                    field=f"items[{first_index[product_id]}].quantity",
                    context={"product_id": product_id, "requested": qty, "remaining_qty": ceiling},
                )
