from __future__ import annotations

import sqlite3
from typing import Iterator

from fastapi import Depends, Request

from ..constants import DOCUMENT_TYPE_PATHS, DOCUMENT_TYPES
from ..database import get_connection
from ..database.repositories.organizations_repo import Organization, OrganizationsRepo
from ..errors import NotFoundError


def get_conn(request: Request) -> Iterator[sqlite3.Connection]:
    """One connection per request, closed when the response is done."""
    conn = get_connection(request.app.state.db_path)
    try:
        yield conn
    finally:
        conn.close()


def get_org(org_slug: str, conn: sqlite3.Connection = Depends(get_conn)) -> Organization:
    return OrganizationsRepo(conn).require_by_slug(org_slug)


def resolve_document_type(segment: str) -> str:
    """'sales_orders' or 'sales_order' -> 'sales_order'."""
    if segment in DOCUMENT_TYPE_PATHS:
        return DOCUMENT_TYPE_PATHS[segment]
    if segment in DOCUMENT_TYPES:
        return segment
    raise NotFoundError(f"Unknown document type: {segment}", field="document_type")
