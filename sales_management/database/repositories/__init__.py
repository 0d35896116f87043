# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from sales_management.database.repositories import (
        # Scope
        OrganizationsRepo, Organization,
        # Configuration
        StatusDefinitionsRepo, StatusDefinition, DocumentSettingsRepo, DocumentSettings,
        # Documents
        DocumentsRepo, DocumentHeader, LineItem,
        # Payments
        InvoicePaymentsRepo, Payment,
    )
"""

# ----------------- Scope -------------------
from .organizations_repo import OrganizationsRepo, Organization

# ------------- Configuration ---------------
from .statuses_repo import StatusDefinitionsRepo, StatusDefinition
from .settings_repo import DocumentSettingsRepo, DocumentSettings

# --------------- Documents -----------------
from .documents_repo import DocumentsRepo, DocumentHeader, LineItem

# --------------- Payments ------------------
from .payments_repo import InvoicePaymentsRepo, Payment

__all__ = [
    # organizations_repo
    "OrganizationsRepo",
    "Organization",
    # statuses_repo
    "StatusDefinitionsRepo",
    "StatusDefinition",
    # settings_repo
    "DocumentSettingsRepo",
    "DocumentSettings",
    # documents_repo
    "DocumentsRepo",
    "DocumentHeader",
    "LineItem",
    # payments_repo
    "InvoicePaymentsRepo",
    "Payment",
]
