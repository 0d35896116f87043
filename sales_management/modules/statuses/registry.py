from __future__ import annotations

from dataclasses import dataclass, field
import logging
import sqlite3
import threading
from typing import Any, Iterable, Mapping, Optional

from ...constants import COMPLETION_FLAG_TYPES, DEFAULT_STATUS_COLOR, DOCUMENT_TYPES
from ...database import write_transaction
from ...database.repositories.statuses_repo import StatusDefinition, StatusDefinitionsRepo
from ...errors import PreconditionError, ReferentialError, ValidationError
from ...utils.helpers import slugify_key
from ...utils.loggers import get_event_logger, log_event
from ...utils.validators import non_empty

_log = logging.getLogger(__name__)


def _database_key(conn: sqlite3.Connection) -> str:
    """File path of the main database; in-memory databases are keyed per connection."""
    row = conn.execute("PRAGMA database_list").fetchone()
    path = row[2] if row else ""
    return path or f"memory:{id(conn)}"


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view of one registry at one version."""

    organization_id: int
    document_type: str
    version: int
    statuses: tuple[StatusDefinition, ...]
    labels: Mapping[str, str] = field(default_factory=dict)
    colors: Mapping[str, str] = field(default_factory=dict)
    completed_key: Optional[str] = None

    @classmethod
    def build(cls, organization_id: int, document_type: str, version: int, statuses: Iterable[StatusDefinition]) -> "RegistrySnapshot":
        rows = tuple(statuses)
        completed = next((s.status_key for s in rows if s.is_completed_status), None)
        return cls(
            organization_id=organization_id,
            document_type=document_type,
            version=version,
            statuses=rows,
            labels={s.status_key: s.status_label for s in rows},
            colors={s.status_key: s.status_color for s in rows},
            completed_key=completed,
        )

    def get(self, status_key: str) -> Optional[StatusDefinition]:
        for s in self.statuses:
            if s.status_key == status_key:
                return s
        return None

    def active_keys(self) -> list[str]:
        return [s.status_key for s in self.statuses if s.is_active]


class StatusRegistry:
    """
    Per-organization workflow statuses for each document type.

    Lookups are cached per (database, organization, document_type) and tagged
    with the registry version; every read compares the tag against the stored version,
    so a write made through any connection is never served stale.
    """

    _cache: dict[tuple[str, int, str], RegistrySnapshot] = {}
    _cache_lock = threading.Lock()

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.repo = StatusDefinitionsRepo(conn)
        self._events = get_event_logger()
        self._db_key = _database_key(conn)

    # ---- cache ------------------------------------------------------------

    @classmethod
    def invalidate(cls, organization_id: int | None = None, document_type: str | None = None) -> None:
        """Drop cached lookups for one registry, one organization, or everything."""
        with cls._cache_lock:
            if organization_id is None:
                cls._cache.clear()
                return
            for key in list(cls._cache):
                if key[1] == organization_id and (document_type is None or key[2] == document_type):
                    del cls._cache[key]

    # ---- reads ------------------------------------------------------------

    def _ensure(self, organization_id: int, document_type: str) -> None:
        if document_type not in DOCUMENT_TYPES:
            raise ValidationError(f"Unknown document type: {document_type}", field="document_type")
        if self.repo.get_version(organization_id, document_type) == 0:
            with write_transaction(self.conn):
                self.repo.ensure_seeded(organization_id, document_type)

    def list_statuses(self, organization_id: int, document_type: str) -> list[StatusDefinition]:
        """Ordered by sort_order."""
        return list(self.snapshot(organization_id, document_type).statuses)

    def snapshot(self, organization_id: int, document_type: str) -> RegistrySnapshot:
        self._ensure(organization_id, document_type)
        version = self.repo.get_version(organization_id, document_type)
        key = (self._db_key, organization_id, document_type)
        with self._cache_lock:
            cached = self._cache.get(key)
        if cached is not None and cached.version == version:
            return cached

        snap = RegistrySnapshot.build(
            organization_id,
            document_type,
            version,
            self.repo.list_statuses(organization_id, document_type),
        )
        with self._cache_lock:
            self._cache[key] = snap
        return snap

    def lookups(self, organization_id: int, document_type: str) -> dict[str, dict[str, str]]:
        snap = self.snapshot(organization_id, document_type)
        return {"labels": dict(snap.labels), "colors": dict(snap.colors)}

    def validate_status(self, organization_id: int, document_type: str, status_key: str) -> str:
        """Return the key if it is an active status of the registry, else ReferentialError."""
        snap = self.snapshot(organization_id, document_type)
        st = snap.get(status_key)
        if st is None:
            raise ReferentialError(
                f"Unknown {document_type} status: {status_key}",
                field="status",
                context={"allowed": snap.active_keys()},
            )
        if not st.is_active:
            raise ReferentialError(
                f"Status {status_key} is inactive for {document_type}",
                field="status",
                context={"allowed": snap.active_keys()},
            )
        return status_key

    def initial_status(self, organization_id: int, document_type: str) -> str:
        """First active status (by sort_order) that is not the completion status."""
        snap = self.snapshot(organization_id, document_type)
        for st in snap.statuses:
            if st.is_active and not st.is_completed_status:
                return st.status_key
        raise PreconditionError(
            f"The {document_type} registry has no active starting status.",
            field="status",
        )

    # ---- writes -----------------------------------------------------------

    def _normalize(self, document_type: str, entries: Iterable[Any]) -> list[StatusDefinition]:
        flagged_type = document_type in COMPLETION_FLAG_TYPES
        out: list[StatusDefinition] = []
        for index, raw in enumerate(entries):
            e = raw.to_dict() if isinstance(raw, StatusDefinition) else dict(raw)
            label = e.get("status_label")
            if not non_empty(label):
                raise ValidationError("Every status needs a label.", field=f"statuses[{index}].status_label")
            key = (e.get("status_key") or "").strip() or slugify_key(label)
            if not key:
                raise ValidationError(
                    f"Cannot derive a status key from label {label!r}.",
                    field=f"statuses[{index}].status_key",
                )
            sort_order = e.get("sort_order")
            out.append(
                StatusDefinition(
                    status_key=key,
                    status_label=str(label).strip(),
                    status_color=(e.get("status_color") or DEFAULT_STATUS_COLOR),
                    sort_order=index if sort_order is None else int(sort_order),
                    is_active=bool(e.get("is_active", True)),
                    is_completed_status=bool(e.get("is_completed_status")) if flagged_type else False,
                )
            )
        return out

    def replace(self, organization_id: int, document_type: str, entries: Iterable[Any]) -> list[StatusDefinition]:
        """
        Swap the whole registry. Nothing is written unless every check passes:
          - at least one status, at least one active
          - every status labelled, keys unique
          - quotation / sales order: exactly one completion status
          - no status still used by a live document is removed
        """
        self._ensure(organization_id, document_type)
        new_rows = self._normalize(document_type, entries)

        if not new_rows:
            raise ValidationError("A status registry cannot be empty.", field="statuses")
        if not any(s.is_active for s in new_rows):
            raise ValidationError("At least one status must be active.", field="statuses")

        seen: set[str] = set()
        for index, st in enumerate(new_rows):
            if st.status_key in seen:
                raise ValidationError(
                    f"Duplicate status key: {st.status_key}",
                    field=f"statuses[{index}].status_key",
                )
            seen.add(st.status_key)

        if document_type in COMPLETION_FLAG_TYPES:
            flagged = [s.status_key for s in new_rows if s.is_completed_status]
            if len(flagged) != 1:
                raise ValidationError(
                    f"Exactly one completed status is required for {document_type}; got {len(flagged)}.",
                    field="is_completed_status",
                    context={"flagged": flagged},
                )

        with write_transaction(self.conn):
            usage = self.repo.usage_counts(organization_id, document_type)
            for key, count in usage.items():
                if key not in seen:
                    raise PreconditionError(
                        f"Status {key} is used by {count} document(s) and cannot be removed.",
                        field="statuses",
                        context={"status_key": key, "usage_count": count},
                    )
            version = self.repo.replace_rows(organization_id, document_type, new_rows)

        self.invalidate(organization_id, document_type)
        log_event(
            self._events,
            "replace_statuses",
            "done",
            f"{document_type} registry replaced",
            {"organization_id": organization_id, "document_type": document_type, "version": version, "count": len(new_rows)},
        )
        return self.list_statuses(organization_id, document_type)

    def set_completed_status(self, organization_id: int, document_type: str, status_key: str) -> list[StatusDefinition]:
        """Flag one status as the completion status; every other entry loses the flag."""
        if document_type not in COMPLETION_FLAG_TYPES:
            raise ValidationError(
                f"{document_type} statuses carry no completion flag.",
                field="document_type",
            )
        self._ensure(organization_id, document_type)

        with write_transaction(self.conn):
            current = {s.status_key: s for s in self.repo.list_statuses(organization_id, document_type)}
            if status_key not in current:
                raise ReferentialError(f"Unknown {document_type} status: {status_key}", field="status_key")
            version = self.repo.set_completed(organization_id, document_type, status_key)

        self.invalidate(organization_id, document_type)
        _log.info("completion status for %s set to %s (org=%s, v%s)", document_type, status_key, organization_id, version)
        return self.list_statuses(organization_id, document_type)
