from __future__ import annotations

import sqlite3
from typing import Any

from fastapi import APIRouter, Depends

from ...database.repositories.organizations_repo import Organization
from ...modules.statuses import StatusRegistry
from ..deps import get_conn, get_org, resolve_document_type
from ..schemas import StatusListIn

router = APIRouter(prefix="/organizations/{org_slug}/statuses", tags=["statuses"])


def _registry_payload(registry: StatusRegistry, organization_id: int, document_type: str) -> dict[str, Any]:
    snap = registry.snapshot(organization_id, document_type)
    return {
        "document_type": document_type,
        "version": snap.version,
        "completed_status": snap.completed_key,
        "statuses": [s.to_dict() for s in snap.statuses],
    }


@router.get("/{document_type}")
def list_statuses(
    document_type: str,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_type)
    return _registry_payload(StatusRegistry(conn), org.organization_id, dt)


@router.put("/{document_type}")
def replace_statuses(
    document_type: str,
    body: StatusListIn,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_type)
    registry = StatusRegistry(conn)
    registry.replace(org.organization_id, dt, [s.model_dump() for s in body.statuses])
    return _registry_payload(registry, org.organization_id, dt)


@router.put("/{document_type}/completed/{status_key}")
def set_completed_status(
    document_type: str,
    status_key: str,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_type)
    registry = StatusRegistry(conn)
    registry.set_completed_status(org.organization_id, dt, status_key)
    return _registry_payload(registry, org.organization_id, dt)
