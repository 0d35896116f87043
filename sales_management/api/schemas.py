from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

# Request bodies only. Shape checks happen here; business rules (ranges,
# registry membership, totals) are enforced by the modules and reported
# with the offending field.


class OrganizationIn(BaseModel):
    slug: str
    name: str

    model_config = {
        "extra": "forbid",
    }


class StatusIn(BaseModel):
    status_key: Optional[str] = None
    status_label: Optional[str] = None
    status_color: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: bool = True
    is_completed_status: bool = False


class StatusListIn(BaseModel):
    statuses: list[StatusIn] = Field(default_factory=list)


class SettingsIn(BaseModel):
    format_template: str
    reset_period: str = "monthly"
    default_tax_rate: float = 0.0

    model_config = {
        "extra": "forbid",
    }


class PreviewIn(BaseModel):
    template: str
    counter: int = 1
    date: Optional[str] = None


class LineItemIn(BaseModel):
    product_id: int
    quantity: float
    product_name: Optional[str] = None
    unit: Optional[str] = None
    unit_price: Optional[float] = None
    discount_percent: Optional[float] = None
    discount_amount: Optional[float] = None
    subtotal: Optional[float] = None
    notes: Optional[str] = None


class DocumentIn(BaseModel):
    source_id: Optional[int] = None
    source_type: Optional[str] = None

    customer_id: Optional[int] = None
    status: Optional[str] = None
    document_date: Optional[str] = None
    sales_person_id: Optional[int] = None
    notes: Optional[str] = None

    discount_amount: Optional[float] = None
    tax_rate: Optional[float] = None
    subtotal: Optional[float] = None
    tax_amount: Optional[float] = None
    total_amount: Optional[float] = None

    expiry_date: Optional[str] = None
    technician_id: Optional[int] = None
    sales_order_id: Optional[int] = None
    delivery_order_id: Optional[int] = None
    delivery_address: Optional[str] = None
    due_date: Optional[str] = None
    payment_terms: Optional[str] = None

    items: Optional[list[LineItemIn]] = None


class DraftIn(BaseModel):
    source_id: int
    source_type: Optional[str] = None


class MarkDeliveredIn(BaseModel):
    delivered_by_id: Optional[int] = None


class PaymentIn(BaseModel):
    amount: float
    method: str
    payment_date: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None

    model_config = {
        "extra": "forbid",
    }
