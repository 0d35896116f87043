from __future__ import annotations

from dataclasses import dataclass, field
import logging
import sqlite3
from typing import Any

from ...constants import (
    CANCELLED_STATUS,
    CONVERSION_SOURCES,
    DELIVERY_ORDER,
    INVOICE,
    NON_CONVERTIBLE_STATUSES,
    QUOTATION,
    SALES_ORDER,
)
from ...database.repositories.documents_repo import DocumentHeader, DocumentsRepo
from ...errors import PreconditionError, ValidationError
from ...utils.helpers import today_str
from ...utils.loggers import get_event_logger, log_event
from ..fulfillment.ledger import FulfillmentLedger
from ..numbering.service import NumberingService
from ..statuses.registry import StatusRegistry

_log = logging.getLogger(__name__)


@dataclass
class ConversionDraft:
    """An unsaved target document prefilled from its source."""

    target_type: str
    source_type: str
    source_id: int
    header: dict[str, Any]
    items: list[dict[str, Any]]
    needs_pricing: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "target_type": self.target_type,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "header": dict(self.header),
            "items": [dict(it) for it in self.items],
            "needs_pricing": self.needs_pricing,
            "warnings": list(self.warnings),
        }


def _label(document_type: str) -> str:
    return document_type.replace("_", " ")


class ConversionPipeline:
    """
    Builds the next document of the chain from an existing one:

        quotation -> sales_order -> delivery_order
        sales_order | delivery_order -> invoice

    convert() reads only; DocumentService persists the draft (and links the
    quotation) in its own write transaction.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.registry = StatusRegistry(conn)
        self.fulfillment = FulfillmentLedger(conn)
        self.numbering = NumberingService(conn)
        self._events = get_event_logger()

    def convert(self, organization_id: int, source_type: str, source_id: int, target_type: str) -> ConversionDraft:
        if source_type not in CONVERSION_SOURCES.get(target_type, ()):
            raise ValidationError(
                f"A {_label(target_type)} cannot be created from a {_label(source_type)}.",
                field="source_type",
                context={"source_type": source_type, "target_type": target_type},
            )

        source = DocumentsRepo(self.conn, source_type).require(organization_id, source_id)
        self._check_source_state(source)

        status = self.registry.initial_status(organization_id, target_type)
        header: dict[str, Any] = {
            "customer_id": source.customer_id,
            "sales_person_id": source.sales_person_id,
            "status": status,
            "document_date": today_str(),
        }

        if target_type == SALES_ORDER:
            draft = self._quotation_to_order(source, header)
        elif target_type == DELIVERY_ORDER:
            draft = self._order_to_delivery(organization_id, source, header)
        elif source_type == SALES_ORDER:
            draft = self._order_to_invoice(source, header)
        else:
            draft = self._delivery_to_invoice(organization_id, source, header)

        log_event(
            self._events,
            "convert",
            "done",
            f"{_label(source_type)} {source.code} -> {_label(target_type)} draft",
            {
                "organization_id": organization_id,
                "source_type": source_type,
                "source_id": source_id,
                "target_type": target_type,
                "lines": len(draft.items),
                "needs_pricing": draft.needs_pricing,
            },
        )
        return draft

    # ---- guards -----------------------------------------------------------

    def _check_source_state(self, source: DocumentHeader) -> None:
        blocked = NON_CONVERTIBLE_STATUSES.get(source.document_type, frozenset())
        if source.status in blocked:
            raise PreconditionError(
                f"{_label(source.document_type).capitalize()} {source.code} is {source.status} and cannot be converted.",
                field="source_id",
                context={"source_id": source.id, "status": source.status},
            )
        if not source.items:
            raise PreconditionError(
                f"{_label(source.document_type).capitalize()} {source.code} has no line items.",
                field="source_id",
                context={"source_id": source.id},
            )
        if source.document_type == QUOTATION and source.converted_to_sales_order_id:
            order = DocumentsRepo(self.conn, SALES_ORDER).get(source.converted_to_sales_order_id, with_items=False)
            if order is not None and order.status != CANCELLED_STATUS:
                raise PreconditionError(
                    f"Quotation {source.code} was already converted to sales order {order.code}.",
                    field="source_id",
                    context={"source_id": source.id, "sales_order_id": order.id},
                )

    # ---- edges ------------------------------------------------------------

    def _quotation_to_order(self, q: DocumentHeader, header: dict[str, Any]) -> ConversionDraft:
        header.update(
            notes=q.notes,
            discount_amount=q.discount_amount or 0.0,
            tax_rate=q.tax_rate or 0.0,
            source_quotation_id=q.id,
        )
        items = [
            {
                "product_id": it.product_id,
                "product_name": it.product_name,
                "unit": it.unit,
                "quantity": it.quantity,
                "unit_price": it.unit_price,
                "discount_percent": it.discount_percent,
                "discount_amount": it.discount_amount,
                "notes": it.notes,
            }
            for it in q.items
        ]
        return ConversionDraft(SALES_ORDER, QUOTATION, q.id, header, items)

    def _order_to_delivery(self, organization_id: int, so: DocumentHeader, header: dict[str, Any]) -> ConversionDraft:
        rows = self.fulfillment.selectable(organization_id, so.id)
        if not rows:
            raise PreconditionError(
                f"Sales order {so.code} is already fully delivered.",
                field="source_id",
                context={"source_id": so.id},
            )
        header.update(
            technician_id=so.technician_id,
            sales_order_id=so.id,
        )
        items = [
            {
                "product_id": r.product_id,
                "product_name": r.product_name,
                "unit": r.unit,
                "quantity": r.remaining_qty,
            }
            for r in rows
        ]
        return ConversionDraft(DELIVERY_ORDER, SALES_ORDER, so.id, header, items)

    def _order_to_invoice(self, so: DocumentHeader, header: dict[str, Any]) -> ConversionDraft:
        header.update(
            notes=so.notes,
            discount_amount=so.discount_amount or 0.0,
            tax_rate=so.tax_rate or 0.0,
            sales_order_id=so.id,
        )
        items = [
            {
                "product_id": it.product_id,
                "product_name": it.product_name,
                "unit": it.unit,
                "quantity": it.quantity,
                "unit_price": it.unit_price,
                "discount_percent": it.discount_percent,
                "discount_amount": it.discount_amount,
            }
            for it in so.items
        ]
        return ConversionDraft(INVOICE, SALES_ORDER, so.id, header, items)

    def _delivery_to_invoice(self, organization_id: int, do: DocumentHeader, header: dict[str, Any]) -> ConversionDraft:
        settings = self.numbering.get_settings(organization_id, INVOICE)
        header.update(
            notes=do.notes,
            discount_amount=0.0,
            tax_rate=settings.default_tax_rate,
            sales_order_id=do.sales_order_id,
            delivery_order_id=do.id,
        )
        items = [
            {
                "product_id": it.product_id,
                "product_name": it.product_name,
                "unit": it.unit,
                "quantity": it.quantity,
                "unit_price": 0.0,
            }
            for it in do.items
        ]
        draft = ConversionDraft(INVOICE, DELIVERY_ORDER, do.id, header, items, needs_pricing=True)
        draft.warnings.append(
            f"Delivery order {do.code} carries no prices; set unit prices before saving the invoice."
        )
        return draft
