from __future__ import annotations
from dataclasses import asdict, dataclass
import sqlite3
from typing import Optional

from .. import write_transaction
from ..seeders.default_data import seed_document_settings


@dataclass
class DocumentSettings:
    document_type: str
    format_template: str
    reset_period: str
    default_tax_rate: float
    current_counter: int
    last_reset_date: Optional[str]

    def to_dict(self) -> dict:
        return asdict(self)


class DocumentSettingsRepo:
    """Per-organization numbering settings (one row per document type)."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, organization_id: int, document_type: str) -> DocumentSettings:
        r = self._fetch(organization_id, document_type)
        if r is None:
            # organizations created before a document type existed get defaults lazily
            with write_transaction(self.conn):
                seed_document_settings(self.conn, organization_id, document_type)
            r = self._fetch(organization_id, document_type)
        return DocumentSettings(
            document_type=r["document_type"],
            format_template=r["format_template"],
            reset_period=r["reset_period"],
            default_tax_rate=float(r["default_tax_rate"]),
            current_counter=int(r["current_counter"]),
            last_reset_date=r["last_reset_date"],
        )

    def _fetch(self, organization_id: int, document_type: str):
        return self.conn.execute(
            """
            SELECT document_type, format_template, reset_period,
                   CAST(default_tax_rate AS REAL) AS default_tax_rate,
                   current_counter, last_reset_date
              FROM document_settings
             WHERE organization_id=? AND document_type=?
            """,
            (organization_id, document_type),
        ).fetchone()

    def update(
        self,
        organization_id: int,
        document_type: str,
        *,
        format_template: str,
        reset_period: str,
        default_tax_rate: float,
    ) -> None:
        self.conn.execute(
            """
            UPDATE document_settings
               SET format_template=?, reset_period=?, default_tax_rate=?
             WHERE organization_id=? AND document_type=?
            """,
            (format_template, reset_period, default_tax_rate, organization_id, document_type),
        )

    def save_counter(self, organization_id: int, document_type: str, counter: int, last_reset_date: str) -> None:
        self.conn.execute(
            """
            UPDATE document_settings
               SET current_counter=?, last_reset_date=?
             WHERE organization_id=? AND document_type=?
            """,
            (counter, last_reset_date, organization_id, document_type),
        )
