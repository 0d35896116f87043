from __future__ import annotations

import logging
import sqlite3
from typing import Any, Mapping, Optional

from ...constants import (
    CANCELLED_STATUS,
    CONVERSION_SOURCES,
    DELIVERED_STATUS,
    DELIVERY_ORDER,
    DOCUMENT_TYPES,
    INVOICE,
    QTY_EPSILON,
    QUOTATION,
    SALES_ORDER,
)
from ...database import write_transaction
from ...database.repositories.documents_repo import DocumentHeader, DocumentsRepo, LineItem
from ...database.repositories.payments_repo import InvoicePaymentsRepo
from ...errors import PreconditionError, ValidationError
from ...utils.helpers import fmt_qty, round_qty, today_str
from ...utils.loggers import get_event_logger, log_event
from ...utils.validators import (
    iso_date,
    optional_int,
    optional_text,
    require_int,
    require_non_negative,
    require_percent,
)
from ..conversion.pipeline import ConversionDraft, ConversionPipeline
from ..fulfillment.ledger import FulfillmentLedger
from ..numbering.service import NumberingService
from ..statuses.registry import StatusRegistry
from ..statuses.revenue import is_revenue_recognized
from .totals import check_supplied, document_totals, normalize_lines

_log = logging.getLogger(__name__)

# Links are set by conversion (or on create) and never edited afterwards.
LINK_COLUMNS: tuple[str, ...] = (
    "source_quotation_id",
    "converted_to_sales_order_id",
    "sales_order_id",
    "delivery_order_id",
)


class DocumentService:
    """
    Create / read / update / soft-delete for one document type.

    Every write runs in a single BEGIN IMMEDIATE transaction that covers the
    conversion, the ledger checks, the code allocation and the insert.
    """

    def __init__(self, conn: sqlite3.Connection, document_type: str):
        if document_type not in DOCUMENT_TYPES:
            raise ValidationError(f"Unknown document type: {document_type}", field="document_type")
        self.conn = conn
        self.document_type = document_type
        self.repo = DocumentsRepo(conn, document_type)
        self.registry = StatusRegistry(conn)
        self.numbering = NumberingService(conn)
        self.pipeline = ConversionPipeline(conn)
        self.fulfillment = FulfillmentLedger(conn)
        self._events = get_event_logger()

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------

    def _present(self, header: DocumentHeader, *, with_items: bool = True) -> dict:
        snap = self.registry.snapshot(header.organization_id, self.document_type)
        d = header.to_dict()
        if not with_items:
            d.pop("items", None)
        d["status_label"] = snap.labels.get(header.status, header.status)
        d["status_color"] = snap.colors.get(header.status)
        d["is_revenue_recognized"] = is_revenue_recognized(header, snap)
        return d

    def list_documents(self, organization_id: int, **filters: Any) -> list[dict]:
        for key in ("date_from", "date_to"):
            if filters.get(key):
                filters[key] = iso_date(filters[key], key)
        rows = self.repo.list_documents(organization_id, **filters)
        return [self._present(h, with_items=False) for h in rows]

    def get(self, organization_id: int, document_id: int) -> dict:
        return self._present(self.repo.require(organization_id, document_id))

    def draft(self, organization_id: int, source_id: int, source_type: Optional[str] = None) -> ConversionDraft:
        """Prefill for a new document; nothing is written."""
        return self.pipeline.convert(
            organization_id,
            self._source_type(source_type),
            require_int(source_id, "source_id"),
            self.document_type,
        )

    # ---------------------------------------------------------------------
    # VALIDATION
    # ---------------------------------------------------------------------

    def _source_type(self, source_type: Optional[str]) -> str:
        allowed = CONVERSION_SOURCES.get(self.document_type, ())
        if not allowed:
            raise ValidationError(
                f"A {self.document_type.replace('_', ' ')} is never created from another document.",
                field="source_id",
            )
        if source_type is None:
            return allowed[0]
        if source_type not in allowed:
            raise ValidationError(
                f"source_type must be one of: {', '.join(allowed)}.",
                field="source_type",
            )
        return source_type

    @staticmethod
    def _merge_draft(draft: ConversionDraft, payload: Mapping[str, Any]) -> dict:
        data = dict(draft.header)
        for key, value in payload.items():
            if key in ("source_id", "source_type", "items") or key in LINK_COLUMNS:
                continue
            if value is not None:
                data[key] = value
        data["items"] = payload.get("items") or draft.items
        return data

    def _check_link(self, organization_id: int, link_type: str, link_id: int) -> DocumentHeader:
        linked = DocumentsRepo(self.conn, link_type).require(organization_id, link_id, with_items=False)
        if linked.status == CANCELLED_STATUS:
            raise PreconditionError(
                f"{link_type.replace('_', ' ').capitalize()} {linked.code} is cancelled.",
                field=f"{link_type}_id",
                context={"id": link_id, "status": linked.status},
            )
        return linked

    def _build(
        self,
        organization_id: int,
        data: Mapping[str, Any],
        existing: Optional[DocumentHeader] = None,
    ) -> tuple[DocumentHeader, list[LineItem]]:
        dt = self.document_type

        status = data.get("status") or (existing.status if existing else None)
        if status is None:
            status = self.registry.initial_status(organization_id, dt)
        elif existing is None or status != existing.status:
            self.registry.validate_status(organization_id, dt, status)

        header = DocumentHeader(
            document_type=dt,
            organization_id=organization_id,
            customer_id=require_int(data.get("customer_id"), "customer_id"),
            status=status,
            document_date=iso_date(
                data.get("document_date"),
                "document_date",
                default=existing.document_date if existing else today_str(),
            ),
            sales_person_id=optional_int(data.get("sales_person_id"), "sales_person_id"),
            notes=optional_text(data.get("notes")),
        )
        if existing is not None:
            header.id = existing.id
            header.code = existing.code

        # links
        if existing is not None:
            for col in LINK_COLUMNS:
                supplied = data.get(col)
                current = getattr(existing, col)
                if supplied is not None and optional_int(supplied, col) != current:
                    raise ValidationError(f"{col} cannot be changed once set.", field=col)
                setattr(header, col, current)
        elif dt == SALES_ORDER:
            header.source_quotation_id = optional_int(data.get("source_quotation_id"), "source_quotation_id")
        elif dt == DELIVERY_ORDER:
            header.sales_order_id = optional_int(data.get("sales_order_id"), "sales_order_id")
            if header.sales_order_id is not None:
                self._check_link(organization_id, SALES_ORDER, header.sales_order_id)
        elif dt == INVOICE:
            header.sales_order_id = optional_int(data.get("sales_order_id"), "sales_order_id")
            header.delivery_order_id = optional_int(data.get("delivery_order_id"), "delivery_order_id")
            if header.delivery_order_id is not None:
                do = self._check_link(organization_id, DELIVERY_ORDER, header.delivery_order_id)
                if header.sales_order_id is None:
                    header.sales_order_id = do.sales_order_id
                elif do.sales_order_id not in (None, header.sales_order_id):
                    raise ValidationError(
                        f"Delivery order {do.code} belongs to a different sales order.",
                        field="delivery_order_id",
                    )
            if header.sales_order_id is not None:
                self._check_link(organization_id, SALES_ORDER, header.sales_order_id)

        # per-type extras
        if dt == QUOTATION:
            header.expiry_date = iso_date(data.get("expiry_date"), "expiry_date")
            if header.expiry_date and header.expiry_date < header.document_date:
                raise ValidationError("expiry_date cannot be before document_date.", field="expiry_date")
        if dt in (SALES_ORDER, DELIVERY_ORDER):
            header.technician_id = optional_int(data.get("technician_id"), "technician_id")
        if dt == DELIVERY_ORDER:
            header.delivery_address = optional_text(data.get("delivery_address"))
        if dt == INVOICE:
            header.due_date = iso_date(data.get("due_date"), "due_date")
            if header.due_date and header.due_date < header.document_date:
                raise ValidationError("due_date cannot be before document_date.", field="due_date")
            header.payment_terms = optional_text(data.get("payment_terms"))

        items = normalize_lines(data.get("items"), priced=header.is_priced)

        if header.is_priced:
            tax_raw = data.get("tax_rate")
            if tax_raw is None or tax_raw == "":
                tax_raw = existing.tax_rate if existing else self.numbering.get_settings(organization_id, dt).default_tax_rate
            header.tax_rate = require_percent(tax_raw, "tax_rate")
            header.discount_amount = require_non_negative(data.get("discount_amount") or 0, "discount_amount")
            totals = document_totals(items, header.discount_amount, header.tax_rate)
            for key, value in totals.items():
                check_supplied(data.get(key), value, key)
                setattr(header, key, value)

        return header, items

    def _check_delivery(self, header: DocumentHeader, items: list[LineItem]) -> None:
        if self.document_type != DELIVERY_ORDER or header.sales_order_id is None:
            return
        if header.status == CANCELLED_STATUS:
            return
        self.fulfillment.assert_within_remaining(
            header.organization_id,
            header.sales_order_id,
            items,
            exclude_delivery_order_id=header.id,
        )

    def _check_order_not_below_delivered(self, header: DocumentHeader, items: list[LineItem]) -> None:
        ordered: dict[int, float] = {}
        for it in items:
            ordered[it.product_id] = ordered.get(it.product_id, 0.0) + it.quantity
        delivered = DocumentsRepo(self.conn, DELIVERY_ORDER).delivered_quantities(header.id)
        for product_id, done in delivered.items():
            done = round_qty(done)
            if done > QTY_EPSILON and round_qty(ordered.get(product_id, 0.0)) + QTY_EPSILON < done:
                raise PreconditionError(
                    f"Product {product_id} has {fmt_qty(done)} delivered; "
                    f"the ordered quantity cannot go below that.",
                    field="items",
                    context={"product_id": product_id, "delivered_qty": done},
                )

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------

    def create(self, organization_id: int, payload: Mapping[str, Any]) -> tuple[dict, list[str]]:
        """
        Insert a document. With `source_id` the conversion runs first and the
        payload only overrides what it sets (links always come from the source).
        Returns (document, warnings).
        """
        warnings: list[str] = []
        with write_transaction(self.conn):
            source_id = payload.get("source_id")
            # a quotation link only ever comes from converting that quotation
            data: Mapping[str, Any] = {k: v for k, v in payload.items() if k != "source_quotation_id"}
            if source_id is not None:
                draft = self.draft(organization_id, source_id, payload.get("source_type"))
                data = self._merge_draft(draft, payload)
                warnings.extend(draft.warnings)

            header, items = self._build(organization_id, data)
            self._check_delivery(header, items)

            header.code = self.numbering.allocate_code(organization_id, self.document_type)
            header.id = self.repo.insert(header, items)

            if self.document_type == SALES_ORDER and header.source_quotation_id is not None:
                self.repo.mark_converted(header.source_quotation_id, header.id)

        log_event(
            self._events,
            "create_document",
            "done",
            f"{self.document_type} {header.code} created",
            {
                "organization_id": organization_id,
                "document_type": self.document_type,
                "id": header.id,
                "code": header.code,
                "source_id": source_id,
            },
        )
        return self.get(organization_id, header.id), warnings

    def update(self, organization_id: int, document_id: int, payload: Mapping[str, Any]) -> dict:
        with write_transaction(self.conn):
            existing = self.repo.require(organization_id, document_id)
            header, items = self._build(organization_id, payload, existing)
            if self.document_type == SALES_ORDER:
                self._check_order_not_below_delivered(header, items)
            self._check_delivery(header, items)
            self.repo.update(document_id, header, items)

        _log.info("%s %s updated (org=%s)", self.document_type, header.code, organization_id)
        return self.get(organization_id, document_id)

    def mark_delivered(self, organization_id: int, document_id: int, delivered_by_id: Optional[int] = None) -> dict:
        """
        Delivery orders only: status -> delivered, stamping delivered_at and
        delivered_by_id. A cancelled order counts against the sales order again
        once delivered, so its lines are re-checked against what is left.
        """
        if self.document_type != DELIVERY_ORDER:
            raise ValidationError(
                f"Only delivery orders can be marked delivered, not {self.document_type}.",
                field="document_type",
            )
        delivered_by = optional_int(delivered_by_id, "delivered_by_id")

        with write_transaction(self.conn):
            doc = self.repo.require(organization_id, document_id)
            if doc.status == DELIVERED_STATUS:
                raise PreconditionError(
                    f"Delivery order {doc.code} is already delivered.",
                    field="status",
                    context={"id": document_id, "delivered_at": doc.delivered_at},
                )
            previous = doc.status
            doc.status = self.registry.validate_status(organization_id, DELIVERY_ORDER, DELIVERED_STATUS)
            self._check_delivery(doc, doc.items)
            self.repo.mark_delivered(document_id, doc.status, delivered_by)

        log_event(
            self._events,
            "mark_delivered",
            "done",
            f"{self.document_type} {doc.code} delivered",
            {
                "organization_id": organization_id,
                "id": document_id,
                "previous_status": previous,
                "delivered_by_id": delivered_by,
            },
        )
        return self.get(organization_id, document_id)

    def delete(self, organization_id: int, document_id: int) -> None:
        """Soft delete; refused while later documents or payments depend on it."""
        with write_transaction(self.conn):
            doc = self.repo.require(organization_id, document_id, with_items=False)

            if self.document_type == SALES_ORDER:
                deliveries = DocumentsRepo(self.conn, DELIVERY_ORDER).list_by_link(
                    "sales_order_id", document_id, exclude_cancelled=True
                )
                invoices = DocumentsRepo(self.conn, INVOICE).list_by_link(
                    "sales_order_id", document_id, exclude_cancelled=True
                )
                if deliveries or invoices:
                    raise PreconditionError(
                        f"Sales order {doc.code} has {len(deliveries)} delivery order(s) and "
                        f"{len(invoices)} invoice(s); cancel or delete them first.",
                        context={"delivery_orders": len(deliveries), "invoices": len(invoices)},
                    )
            elif self.document_type == DELIVERY_ORDER:
                invoices = DocumentsRepo(self.conn, INVOICE).list_by_link(
                    "delivery_order_id", document_id, exclude_cancelled=True
                )
                if invoices:
                    raise PreconditionError(
                        f"Delivery order {doc.code} is invoiced by {len(invoices)} invoice(s).",
                        context={"invoices": len(invoices)},
                    )
            elif self.document_type == INVOICE:
                _, count = InvoicePaymentsRepo(self.conn).total_paid(document_id)
                if count:
                    raise PreconditionError(
                        f"Invoice {doc.code} has {count} payment(s); delete them first.",
                        context={"payments": count},
                    )

            self.repo.soft_delete(document_id)

        log_event(
            self._events,
            "delete_document",
            "done",
            f"{self.document_type} {doc.code} deleted",
            {"organization_id": organization_id, "document_type": self.document_type, "id": document_id},
        )
