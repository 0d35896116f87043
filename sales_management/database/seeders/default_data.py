from __future__ import annotations

import sqlite3

from ...constants import COMPLETION_FLAG_TYPES, DEFAULT_NUMBERING, DEFAULT_STATUSES, DOCUMENT_TYPES


def seed_status_registry(conn: sqlite3.Connection, organization_id: int, document_type: str) -> bool:
    """
    Insert the default registry for (organization, document_type) if it has no rows yet.
    Returns True when rows were inserted. Safe to run repeatedly.
    """
    row = conn.execute(
        "SELECT COUNT(*) AS n FROM status_definitions WHERE organization_id=? AND document_type=?",
        (organization_id, document_type),
    ).fetchone()
    if row["n"]:
        return False

    flagged = document_type in COMPLETION_FLAG_TYPES
    for index, st in enumerate(DEFAULT_STATUSES[document_type]):
        conn.execute(
            """
            INSERT INTO status_definitions (
                organization_id, document_type, status_key, status_label,
                status_color, sort_order, is_active, is_completed_status
            ) VALUES (?, ?, ?, ?, ?, ?, 1, ?)
            """,
            (
                organization_id,
                document_type,
                st["status_key"],
                st["status_label"],
                st["status_color"],
                index,
                1 if (flagged and st.get("is_completed_status")) else 0,
            ),
        )
    conn.execute(
        """
        INSERT OR IGNORE INTO status_registry_versions (organization_id, document_type, version)
        VALUES (?, ?, 1)
        """,
        (organization_id, document_type),
    )
    return True


def seed_document_settings(conn: sqlite3.Connection, organization_id: int, document_type: str) -> None:
    defaults = DEFAULT_NUMBERING[document_type]
    conn.execute(
        """
        INSERT OR IGNORE INTO document_settings (
            organization_id, document_type, format_template, reset_period,
            default_tax_rate, current_counter, last_reset_date
        ) VALUES (?, ?, ?, ?, ?, 0, NULL)
        """,
        (
            organization_id,
            document_type,
            defaults["format_template"],
            defaults["reset_period"],
            defaults["default_tax_rate"],
        ),
    )


def seed(conn: sqlite3.Connection, organization_id: int) -> None:
    """Default registries + numbering settings for every document type."""
    for document_type in DOCUMENT_TYPES:
        seed_status_registry(conn, organization_id, document_type)
        seed_document_settings(conn, organization_id, document_type)
