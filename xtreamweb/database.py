"""SQLite database: schema, store handle and in-place migrations.

Usage
-----
One handle per process, created in the FastAPI lifespan and injected
into every service that touches the store:

    db = Database(db_path)
    db.init()
    try:
        with db.transaction() as conn:
            conn.execute(...)
    finally:
        db.close()
"""
from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

DB_NAME = "xtream-cache.db"


# ---------------------------------------------------------------------------
# Low-level connection helpers
# ---------------------------------------------------------------------------

def _lower(value: str | None) -> str | None:
    """SQLite user function: PY_LOWER(string), Unicode-aware."""
    if value is None:
        return None
    return value.casefold()


def db_connect(db_path: str) -> sqlite3.Connection:
    """Return a synchronous :class:`sqlite3.Connection` tuned for performance."""
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA cache_size=-32768")   # 32 MB page cache
    conn.create_function("py_lower", 1, _lower, deterministic=True)
    return conn


# ---------------------------------------------------------------------------
# Schema – CREATE TABLE IF NOT EXISTS
# ---------------------------------------------------------------------------

_SCHEMA = """
-- ── Response cache ────────────────────────────────────────────────────────

-- One row per normalised upstream request URL.
-- Timestamps are epoch milliseconds.
CREATE TABLE IF NOT EXISTS cache (
    key           TEXT PRIMARY KEY,
    value         TEXT NOT NULL,
    expires_at    INTEGER NOT NULL,
    created_at    INTEGER NOT NULL,
    hit_count     INTEGER NOT NULL DEFAULT 0,
    last_accessed INTEGER
);

CREATE INDEX IF NOT EXISTS idx_cache_expires_at
    ON cache (expires_at);
CREATE INDEX IF NOT EXISTS idx_cache_last_accessed
    ON cache (last_accessed);

-- ── Structured items ──────────────────────────────────────────────────────

-- One row per VOD stream / series from the upstream listings.
-- 'id' is the provider's stream_id / series_id.
CREATE TABLE IF NOT EXISTS items (
    id           TEXT NOT NULL,
    type         TEXT NOT NULL CHECK (type IN ('vod', 'series')),
    name         TEXT NOT NULL,
    poster_url   TEXT,
    category_id  TEXT,
    updated_at   INTEGER NOT NULL,
    PRIMARY KEY (id, type)
);

CREATE INDEX IF NOT EXISTS idx_items_type
    ON items (type);
CREATE INDEX IF NOT EXISTS idx_items_type_cat
    ON items (type, category_id);
CREATE INDEX IF NOT EXISTS idx_items_updated
    ON items (updated_at);
"""

_ITEMS_TABLE = """
CREATE TABLE items (
    id           TEXT NOT NULL,
    type         TEXT NOT NULL CHECK (type IN ('vod', 'series')),
    name         TEXT NOT NULL,
    poster_url   TEXT,
    category_id  TEXT,
    updated_at   INTEGER NOT NULL,
    PRIMARY KEY (id, type)
)
"""


def _table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    return [row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def _migrate_items_drop_stream_id(conn: sqlite3.Connection) -> bool:
    """Rebuild an ``items`` table that still carries a ``stream_id`` column.

    The provider id becomes the row id; when two legacy rows collapse onto
    the same ``(id, type)`` the most recently updated one wins.
    Returns True when a rebuild happened.
    """
    columns = _table_columns(conn, "items")
    if "stream_id" not in columns:
        return False

    logger.info("Migrating items table: folding stream_id into id")
    with conn:
        conn.execute("BEGIN")
        conn.execute("DROP TABLE IF EXISTS items_old")
        conn.execute("ALTER TABLE items RENAME TO items_old")
        conn.execute(_ITEMS_TABLE)
        conn.execute(
            """INSERT OR REPLACE INTO items
               (id, type, name, poster_url, category_id, updated_at)
               SELECT COALESCE(NULLIF(stream_id, ''), id), type, name,
                      poster_url, category_id, updated_at
               FROM items_old
               ORDER BY updated_at"""
        )
        conn.execute("DROP TABLE items_old")
    # Indexes were dropped together with items_old
    conn.executescript(_SCHEMA)
    return True


# ---------------------------------------------------------------------------
# Store handle
# ---------------------------------------------------------------------------

class Database:
    """Owns the single SQLite connection shared by all services.

    All access happens on the event-loop thread; multi-row writes go
    through :meth:`transaction` so readers never see a partial batch.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def init(self) -> None:
        """Open the connection and create all tables. Idempotent."""
        if self._conn is not None:
            return
        directory = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(directory, exist_ok=True)
        conn = db_connect(self.db_path)
        try:
            conn.executescript(_SCHEMA)
            conn.commit()
            _migrate_items_drop_stream_id(conn)
        except Exception:
            conn.close()
            raise
        self._conn = conn
        logger.info(f"Database initialised at {self.db_path}")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database is not initialised; call init() first")
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back and re-raise on error."""
        conn = self.conn
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Database connection closed")
