from __future__ import annotations
from dataclasses import dataclass
import re
import sqlite3

from ...errors import NotFoundError, ValidationError
from ...utils.validators import require_text
from .. import write_transaction
from ..seeders.default_data import seed as seed_defaults

_SLUG_RX = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


@dataclass
class Organization:
    organization_id: int
    slug: str
    name: str


class OrganizationsRepo:
    """
    Minimal organization scope. Membership and contact data live in an external
    directory; here an organization is only the key every document is filed under.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, organization_id: int) -> Organization | None:
        r = self.conn.execute(
            "SELECT organization_id, slug, name FROM organizations WHERE organization_id=?",
            (organization_id,),
        ).fetchone()
        return Organization(**r) if r else None

    def get_by_slug(self, slug: str) -> Organization | None:
        r = self.conn.execute(
            "SELECT organization_id, slug, name FROM organizations WHERE slug=?",
            ((slug or "").strip().lower(),),
        ).fetchone()
        return Organization(**r) if r else None

    def require_by_slug(self, slug: str) -> Organization:
        org = self.get_by_slug(slug)
        if org is None:
            raise NotFoundError(f"Organization not found: {slug}")
        return org

    def create(self, slug: str, name: str) -> Organization:
        """
        Insert the organization and seed its default status registries and
        numbering settings in the same transaction.
        """
        slug_n = (slug or "").strip().lower()
        if not _SLUG_RX.match(slug_n):
            raise ValidationError(
                "slug must start with a letter or digit and contain only a-z, 0-9, '-' or '_'.",
                field="slug",
            )
        name_n = require_text(name, "name")

        with write_transaction(self.conn):
            if self.get_by_slug(slug_n) is not None:
                raise ValidationError(f"Organization slug already taken: {slug_n}", field="slug")
            cur = self.conn.execute(
                "INSERT INTO organizations(slug, name) VALUES (?, ?)",
                (slug_n, name_n),
            )
            organization_id = int(cur.lastrowid)
            seed_defaults(self.conn, organization_id)

        return Organization(organization_id, slug_n, name_n)
