from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from ...constants import DOCUMENT_TYPES
from ...database import write_transaction
from ...database.repositories.documents_repo import DocumentsRepo
from ...database.repositories.settings_repo import DocumentSettings, DocumentSettingsRepo
from ...errors import ValidationError
from ...utils.loggers import get_event_logger, log_event
from ...utils.validators import require_percent
from .formatter import DateLike, as_date, format_code, next_counter, preview_format, validate_format

_log = logging.getLogger(__name__)


def _require_type(document_type: str) -> str:
    if document_type not in DOCUMENT_TYPES:
        raise ValidationError(f"Unknown document type: {document_type}", field="document_type")
    return document_type


class NumberingService:
    """
    Mints human document codes from the per-organization settings.

    allocate_code() must run inside the write transaction that inserts the
    document: the counter read, the increment and the insert then commit or
    roll back together, and BEGIN IMMEDIATE keeps two writers from seeing the
    same counter.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.repo = DocumentSettingsRepo(conn)
        self._events = get_event_logger()

    def get_settings(self, organization_id: int, document_type: str) -> DocumentSettings:
        return self.repo.get(organization_id, _require_type(document_type))

    def update_settings(
        self,
        organization_id: int,
        document_type: str,
        *,
        format_template: str,
        reset_period: str,
        default_tax_rate: float = 0.0,
    ) -> DocumentSettings:
        _require_type(document_type)
        template = validate_format((format_template or "").strip(), reset_period)
        tax = require_percent(default_tax_rate, "default_tax_rate")

        with write_transaction(self.conn):
            self.repo.get(organization_id, document_type)  # seeds the row if missing
            self.repo.update(
                organization_id,
                document_type,
                format_template=template,
                reset_period=reset_period,
                default_tax_rate=tax,
            )
        _log.info("numbering settings updated org=%s type=%s template=%s", organization_id, document_type, template)
        return self.repo.get(organization_id, document_type)

    def allocate_code(
        self,
        organization_id: int,
        document_type: str,
        current_date: Optional[DateLike] = None,
    ) -> str:
        """
        Next code for (organization, type); persists the counter.

        Counters whose code is already taken (settings stored before the
        format / reset check existed) are skipped. When called inside the
        caller's transaction the caller logs the outcome after its commit.
        """
        _require_type(document_type)
        today = as_date(current_date)
        owns_transaction = not self.conn.in_transaction
        documents = DocumentsRepo(self.conn, document_type)
        with write_transaction(self.conn):
            settings = self.repo.get(organization_id, document_type)
            counter = next_counter(
                settings.current_counter,
                settings.reset_period,
                settings.last_reset_date,
                today,
            )
            code = format_code(settings.format_template, counter, today)
            while documents.code_exists(organization_id, code):
                _log.warning("code %s already taken (org=%s); skipping counter %s", code, organization_id, counter)
                counter += 1
                code = format_code(settings.format_template, counter, today)
            self.repo.save_counter(organization_id, document_type, counter, today.isoformat())

        if not owns_transaction:
            return code
        log_event(
            self._events,
            "allocate_code",
            "done",
            f"allocated {code}",
            {"organization_id": organization_id, "document_type": document_type, "counter": counter},
        )
        return code

    @staticmethod
    def preview(template: str, counter: int = 1, current_date: Optional[DateLike] = None) -> str:
        return preview_format(template, counter, current_date)
