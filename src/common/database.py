"""SQLite database utilities for the featured market engine.

Two tables back the engine:

- ``active_markets``: the candidate pool, one JSON payload per market,
  written by the market updater and read in market-id order.
- ``featured_markets``: the selection history, newest row = highest id.

Rows are partitioned by ``namespace`` so several deployments can share
one database file.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from .config import DatabaseSettings

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS active_markets (
    namespace TEXT NOT NULL,
    market_id INTEGER NOT NULL,
    payload TEXT NOT NULL,
    updated_at TEXT DEFAULT (datetime('now')),
    PRIMARY KEY (namespace, market_id)
);

CREATE TABLE IF NOT EXISTS featured_markets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    namespace TEXT NOT NULL,
    payload TEXT NOT NULL,
    selected_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_featured_namespace_id
    ON featured_markets(namespace, id);
"""


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """Get a SQLite connection with row factory enabled."""
    path = Path(db_path or DatabaseSettings().db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db(db_path: str | Path | None = None) -> None:
    """Create all tables if they don't exist."""
    conn = get_connection(db_path)
    try:
        conn.executescript(_CREATE_TABLES_SQL)
        conn.commit()
    finally:
        conn.close()
