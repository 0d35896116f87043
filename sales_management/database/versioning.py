import logging
import sqlite3

from ..constants import SCHEMA_VERSION, TABLE_SCHEMA_VERSION

_log = logging.getLogger(__name__)

# columns added after 1.0.0; CREATE TABLE IF NOT EXISTS leaves older tables as they were
_ADDED_COLUMNS: dict[str, tuple[tuple[str, str], ...]] = {
    "delivery_orders": (("delivered_at", "TIMESTAMP"), ("delivered_by_id", "INTEGER")),
}


def _ensure_table(conn: sqlite3.Connection):
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {TABLE_SCHEMA_VERSION}(
            id INTEGER PRIMARY KEY CHECK (id=1),
            version TEXT NOT NULL
        );
    """)


def _as_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(p) for p in version.split(".") if p.isdigit())


def _add_missing_columns(conn: sqlite3.Connection) -> list[str]:
    added = []
    for table, columns in _ADDED_COLUMNS.items():
        present = {r["name"] for r in conn.execute(f"PRAGMA table_info({table});").fetchall()}
        for name, decl in columns:
            if name not in present:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl};")
                added.append(f"{table}.{name}")
    return added


def get_current_version(conn: sqlite3.Connection) -> str | None:
    _ensure_table(conn)
    row = conn.execute(f"SELECT version FROM {TABLE_SCHEMA_VERSION} WHERE id=1;").fetchone()
    return row["version"] if row else None


def stamp_version(conn: sqlite3.Connection, version: str) -> None:
    _ensure_table(conn)
    conn.execute(
        f"""
        INSERT INTO {TABLE_SCHEMA_VERSION}(id, version) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET version = excluded.version;
        """,
        (version,),
    )


def ensure_current_version(conn: sqlite3.Connection) -> str:
    """
    Stamp a fresh database with SCHEMA_VERSION and move older stamps forward,
    adding the columns later releases introduced. A database stamped by a
    newer release is left alone.
    """
    current = get_current_version(conn)
    if current is None or _as_tuple(current) < _as_tuple(SCHEMA_VERSION):
        added = _add_missing_columns(conn)
        if added:
            _log.info("schema %s -> %s: added %s", current, SCHEMA_VERSION, ", ".join(added))
        stamp_version(conn, SCHEMA_VERSION)
        return SCHEMA_VERSION
    if _as_tuple(current) > _as_tuple(SCHEMA_VERSION):
        _log.warning("database schema %s is newer than this release (%s)", current, SCHEMA_VERSION)
    return current
