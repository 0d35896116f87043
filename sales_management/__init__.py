"""Sales document chain: quotations, sales orders, delivery orders, invoices."""

__version__ = "1.0.0"
