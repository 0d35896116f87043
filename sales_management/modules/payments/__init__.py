from .ledger import PaymentLedger, PaymentSummary

__all__ = ["PaymentLedger", "PaymentSummary"]
