# database/__init__.py
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
from typing import Iterator

from ..config import DB_PATH
from . import schema as schema_module
from .versioning import ensure_current_version


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode (file databases)
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
      - check_same_thread=False (one connection per request, possibly handed across a threadpool)
    Ensures the schema is applied idempotently.
    """
    target = str(db_path if db_path is not None else DB_PATH)
    if target != ":memory:":
        Path(target).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(target, check_same_thread=False, timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    if target != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL;")

    schema_module.apply_schema(conn)
    ensure_current_version(conn)

    conn.commit()
    return conn


@contextmanager
def write_transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    BEGIN IMMEDIATE ... COMMIT/ROLLBACK.

    Takes the database write lock up front so that a ledger read and the insert
    that depends on it are atomic with respect to other writers. Joins the
    caller's transaction when one is already open.
    """
    if conn.in_transaction:
        yield conn
        return

    conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


__all__ = [
    "get_connection",
    "write_transaction",
]
