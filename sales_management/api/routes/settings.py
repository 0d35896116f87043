from __future__ import annotations

import sqlite3
from typing import Any

from fastapi import APIRouter, Depends

from ...database.repositories.organizations_repo import Organization
from ...modules.numbering import NumberingService
from ..deps import get_conn, get_org, resolve_document_type
from ..schemas import PreviewIn, SettingsIn

router = APIRouter(tags=["settings"])


@router.get("/organizations/{org_slug}/settings/{document_type}")
def get_settings(
    document_type: str,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_type)
    settings = NumberingService(conn).get_settings(org.organization_id, dt)
    return settings.to_dict()


@router.put("/organizations/{org_slug}/settings/{document_type}")
def update_settings(
    document_type: str,
    body: SettingsIn,
    org: Organization = Depends(get_org),
    conn: sqlite3.Connection = Depends(get_conn),
) -> dict[str, Any]:
    dt = resolve_document_type(document_type)
    settings = NumberingService(conn).update_settings(
        org.organization_id,
        dt,
        format_template=body.format_template,
        reset_period=body.reset_period,
        default_tax_rate=body.default_tax_rate,
    )
    return settings.to_dict()


@router.post("/numbering/preview")
def preview_code(body: PreviewIn) -> dict[str, str]:
    return {"preview": NumberingService.preview(body.template, body.counter, body.date)}
