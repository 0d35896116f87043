from __future__ import annotations
from dataclasses import asdict, dataclass
import sqlite3
from typing import Iterable

from ...constants import DOCUMENT_TABLES
from ..seeders.default_data import seed_status_registry


@dataclass
class StatusDefinition:
    status_key: str
    status_label: str
    status_color: str
    sort_order: int
    is_active: bool = True
    is_completed_status: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class StatusDefinitionsRepo:
    """
    Rows of status_definitions for one (organization, document_type) registry.

    Validation lives in modules.statuses.StatusRegistry; this class only reads and
    writes. Callers wrap writes in database.write_transaction().
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---- Queries ----------------------------------------------------------

    def list_statuses(self, organization_id: int, document_type: str) -> list[StatusDefinition]:
        rows = self.conn.execute(
            """
            SELECT status_key, status_label, status_color, sort_order,
                   is_active, is_completed_status
              FROM status_definitions
             WHERE organization_id = ? AND document_type = ?
             ORDER BY sort_order, status_id
            """,
            (organization_id, document_type),
        ).fetchall()
        return [
            StatusDefinition(
                status_key=r["status_key"],
                status_label=r["status_label"],
                status_color=r["status_color"],
                sort_order=int(r["sort_order"]),
                is_active=bool(r["is_active"]),
                is_completed_status=bool(r["is_completed_status"]),
            )
            for r in rows
        ]

    def get_version(self, organization_id: int, document_type: str) -> int:
        r = self.conn.execute(
            "SELECT version FROM status_registry_versions WHERE organization_id=? AND document_type=?",
            (organization_id, document_type),
        ).fetchone()
        return int(r["version"]) if r else 0

    def usage_counts(self, organization_id: int, document_type: str) -> dict[str, int]:
        """status_key -> number of live (non-deleted) documents using it."""
        table = DOCUMENT_TABLES[document_type]
        rows = self.conn.execute(
            f"""
            SELECT status, COUNT(*) AS n
              FROM {table}
             WHERE organization_id = ? AND is_deleted = 0
             GROUP BY status
            """,
            (organization_id,),
        ).fetchall()
        return {r["status"]: int(r["n"]) for r in rows}

    # ---- Mutations --------------------------------------------------------

    def ensure_seeded(self, organization_id: int, document_type: str) -> bool:
        return seed_status_registry(self.conn, organization_id, document_type)

    def replace_rows(self, organization_id: int, document_type: str, statuses: Iterable[StatusDefinition]) -> int:
        """Delete + insert the whole registry, bump its version. Returns the new version."""
        self.conn.execute(
            "DELETE FROM status_definitions WHERE organization_id=? AND document_type=?",
            (organization_id, document_type),
        )
        for st in statuses:
            self.conn.execute(
                """
                INSERT INTO status_definitions (
                    organization_id, document_type, status_key, status_label,
                    status_color, sort_order, is_active, is_completed_status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    organization_id,
                    document_type,
                    st.status_key,
                    st.status_label,
                    st.status_color,
                    st.sort_order,
                    1 if st.is_active else 0,
                    1 if st.is_completed_status else 0,
                ),
            )
        return self.bump_version(organization_id, document_type)

    def set_completed(self, organization_id: int, document_type: str, status_key: str) -> int:
        # clear first: the partial unique index allows one flagged row at a time
        self.conn.execute(
            """
            UPDATE status_definitions SET is_completed_status = 0
             WHERE organization_id=? AND document_type=? AND is_completed_status = 1
            """,
            (organization_id, document_type),
        )
        self.conn.execute(
            """
            UPDATE status_definitions SET is_completed_status = 1
             WHERE organization_id=? AND document_type=? AND status_key=?
            """,
            (organization_id, document_type, status_key),
        )
        return self.bump_version(organization_id, document_type)

    def bump_version(self, organization_id: int, document_type: str) -> int:
        self.conn.execute(
            """
            INSERT INTO status_registry_versions (organization_id, document_type, version)
            VALUES (?, ?, 1)
            ON CONFLICT(organization_id, document_type)
            DO UPDATE SET version = version + 1, updated_at = CURRENT_TIMESTAMP
            """,
            (organization_id, document_type),
        )
        return self.get_version(organization_id, document_type)
