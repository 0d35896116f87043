from .ledger import DELIVERED, PARTIAL, PENDING, FulfillmentLedger, FulfillmentRow

__all__ = ["DELIVERED", "PARTIAL", "PENDING", "FulfillmentLedger", "FulfillmentRow"]
