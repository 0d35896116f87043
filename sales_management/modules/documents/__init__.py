from .service import DocumentService
from .totals import document_totals, line_amounts, normalize_lines

__all__ = ["DocumentService", "document_totals", "line_amounts", "normalize_lines"]
