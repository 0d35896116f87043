from __future__ import annotations

import sqlite3
from typing import Any

from fastapi import APIRouter, Depends

from ...database.repositories.organizations_repo import Organization, OrganizationsRepo
from ..deps import get_conn, get_org
from ..schemas import OrganizationIn

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post("", status_code=201)
def create_organization(body: OrganizationIn, conn: sqlite3.Connection = Depends(get_conn)) -> dict[str, Any]:
    org = OrganizationsRepo(conn).create(body.slug, body.name)
    return {"organization_id": org.organization_id, "slug": org.slug, "name": org.name}


@router.get("/{org_slug}")
def get_organization(org: Organization = Depends(get_org)) -> dict[str, Any]:
    return {"organization_id": org.organization_id, "slug": org.slug, "name": org.name}
