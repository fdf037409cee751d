"""SQLite database — schema and connection helpers.

Usage
-----
    conn = db_connect(db_path)
    try:
        conn.execute(...)
        conn.commit()
    finally:
        conn.close()
"""
from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

DB_NAME = "catalog.db"


def db_connect(db_path: str) -> sqlite3.Connection:
    """Return a synchronous :class:`sqlite3.Connection` with WAL enabled.

    *Always* called inside a ``try/finally`` block by callers.
    """
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    return conn


# ---------------------------------------------------------------------------
# Schema – CREATE TABLE IF NOT EXISTS
# ---------------------------------------------------------------------------

_SCHEMA = """
-- Last known raw M3U text. A single row, replaced wholesale on every write.
CREATE TABLE IF NOT EXISTS playlist_cache (
    id         INTEGER PRIMARY KEY CHECK (id = 1),
    source_url TEXT NOT NULL DEFAULT '',
    raw_text   TEXT NOT NULL DEFAULT '',
    updated_at TEXT
);
"""


def init_db(db_path: str) -> None:
    """Create all tables. Safe to call on every startup (idempotent)."""
    conn = db_connect(db_path)
    try:
        conn.executescript(_SCHEMA)
        conn.commit()
        logger.info(f"Database initialised at {db_path}")
    finally:
        conn.close()
