APP_NAME = "Sales Management"

DATA_DIR = "data"
DB_FILE_NAME = "sales.db"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.1.0"

# ---- Document types ----
QUOTATION = "quotation"
SALES_ORDER = "sales_order"
DELIVERY_ORDER = "delivery_order"
INVOICE = "invoice"

DOCUMENT_TYPES: tuple[str, ...] = (QUOTATION, SALES_ORDER, DELIVERY_ORDER, INVOICE)

# Only these registries carry an is_completed_status flag.
COMPLETION_FLAG_TYPES: frozenset[str] = frozenset({QUOTATION, SALES_ORDER})

# Delivery orders carry quantities only.
PRICED_TYPES: frozenset[str] = frozenset({QUOTATION, SALES_ORDER, INVOICE})

# URL segment -> document type
DOCUMENT_TYPE_PATHS: dict[str, str] = {
    "quotations": QUOTATION,
    "sales_orders": SALES_ORDER,
    "delivery_orders": DELIVERY_ORDER,
    "invoices": INVOICE,
}

# Header / item tables per document type
DOCUMENT_TABLES: dict[str, str] = {
    QUOTATION: "quotations",
    SALES_ORDER: "sales_orders",
    DELIVERY_ORDER: "delivery_orders",
    INVOICE: "invoices",
}
ITEM_TABLES: dict[str, str] = {
    QUOTATION: "quotation_items",
    SALES_ORDER: "sales_order_items",
    DELIVERY_ORDER: "delivery_order_items",
    INVOICE: "invoice_items",
}

# Header columns beyond the shared shape
EXTRA_COLUMNS: dict[str, tuple[str, ...]] = {
    QUOTATION: ("expiry_date", "converted_to_sales_order_id"),
    SALES_ORDER: ("source_quotation_id", "technician_id"),
    DELIVERY_ORDER: ("sales_order_id", "technician_id", "delivery_address"),
    INVOICE: ("sales_order_id", "delivery_order_id", "due_date", "payment_terms"),
}

# Allowed conversion edges: target -> sources
CONVERSION_SOURCES: dict[str, tuple[str, ...]] = {
    SALES_ORDER: (QUOTATION,),
    DELIVERY_ORDER: (SALES_ORDER,),
    INVOICE: (SALES_ORDER, DELIVERY_ORDER),
}

CANCELLED_STATUS = "cancelled"
DELIVERED_STATUS = "delivered"

# Source statuses that forbid spawning the next document
NON_CONVERTIBLE_STATUSES: dict[str, frozenset[str]] = {
    QUOTATION: frozenset({"rejected", "expired", CANCELLED_STATUS}),
    SALES_ORDER: frozenset({CANCELLED_STATUS}),
    DELIVERY_ORDER: frozenset({CANCELLED_STATUS}),
    INVOICE: frozenset({CANCELLED_STATUS}),
}

# ---- Default status registries ----
DEFAULT_STATUS_COLOR = "#3B82F6"

DEFAULT_STATUSES: dict[str, list[dict]] = {
    QUOTATION: [
        {"status_key": "draft", "status_label": "Draft", "status_color": "#6B7280", "is_completed_status": False},
        {"status_key": "sent", "status_label": "Sent", "status_color": "#3B82F6", "is_completed_status": False},
        {"status_key": "accepted", "status_label": "Accepted", "status_color": "#10B981", "is_completed_status": True},
        {"status_key": "rejected", "status_label": "Rejected", "status_color": "#EF4444", "is_completed_status": False},
        {"status_key": "expired", "status_label": "Expired", "status_color": "#9CA3AF", "is_completed_status": False},
    ],
    SALES_ORDER: [
        {"status_key": "draft", "status_label": "Draft", "status_color": "#6B7280", "is_completed_status": False},
        {"status_key": "confirmed", "status_label": "Confirmed", "status_color": "#3B82F6", "is_completed_status": False},
        {"status_key": "processing", "status_label": "Processing", "status_color": "#F59E0B", "is_completed_status": False},
        {"status_key": "shipped", "status_label": "Shipped", "status_color": "#8B5CF6", "is_completed_status": False},
        {"status_key": "delivered", "status_label": "Delivered", "status_color": "#10B981", "is_completed_status": True},
        {"status_key": "cancelled", "status_label": "Cancelled", "status_color": "#EF4444", "is_completed_status": False},
    ],
    DELIVERY_ORDER: [
        {"status_key": "draft", "status_label": "Draft", "status_color": "#6B7280"},
        {"status_key": "ready", "status_label": "Ready", "status_color": "#3B82F6"},
        {"status_key": "in_transit", "status_label": "In Transit", "status_color": "#F59E0B"},
        {"status_key": "delivered", "status_label": "Delivered", "status_color": "#10B981"},
        {"status_key": "cancelled", "status_label": "Cancelled", "status_color": "#EF4444"},
    ],
    INVOICE: [
        {"status_key": "draft", "status_label": "Draft", "status_color": "#6B7280"},
        {"status_key": "sent", "status_label": "Sent", "status_color": "#3B82F6"},
        {"status_key": "partially_paid", "status_label": "Partially Paid", "status_color": "#F59E0B"},
        {"status_key": "paid", "status_label": "Paid", "status_color": "#10B981"},
        {"status_key": "overdue", "status_label": "Overdue", "status_color": "#EF4444"},
        {"status_key": "cancelled", "status_label": "Cancelled", "status_color": "#9CA3AF"},
    ],
}

# ---- Numbering ----
RESET_PERIODS: tuple[str, ...] = ("never", "daily", "monthly", "yearly")

DEFAULT_NUMBERING: dict[str, dict] = {
    QUOTATION: {"format_template": "QT-{YYMM}-{5digits}", "reset_period": "monthly", "default_tax_rate": 0.0},
    SALES_ORDER: {"format_template": "SO-{YYMM}-{5digits}", "reset_period": "monthly", "default_tax_rate": 0.0},
    DELIVERY_ORDER: {"format_template": "DO-{YYMM}-{5digits}", "reset_period": "monthly", "default_tax_rate": 0.0},
    INVOICE: {"format_template": "INV-{YYMM}-{5digits}", "reset_period": "monthly", "default_tax_rate": 0.0},
}

# ---- Payments ----
PAYMENT_METHODS: tuple[str, ...] = ("cash", "bank_transfer", "cheque", "card", "other")

# Money comparisons (half a cent) and quantity comparisons
MONEY_TOLERANCE = 0.005
QTY_EPSILON = 1e-9
QTY_DECIMALS = 6
