from . import documents, organizations, payments, settings, statuses

__all__ = ["documents", "organizations", "payments", "settings", "statuses"]
