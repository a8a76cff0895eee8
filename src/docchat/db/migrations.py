"""Schema migrations for the docchat database, applied oldest first, never rolled back.

The per-model vec_sentences_* tables are created on demand by
docchat.db.vectors.ensure_vec_table(), not here.
"""

from __future__ import annotations

import sqlite3

_VERSION_TABLE_SQL = (
    "CREATE TABLE IF NOT EXISTS schema_version ("
    "version INTEGER NOT NULL, "
    "applied_at DATETIME NOT NULL DEFAULT (datetime('now')))"
)

# V1: the read-mostly corpus plus the conversation records.
_V1_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    id              INTEGER PRIMARY KEY,
    path            TEXT NOT NULL UNIQUE,
    parsed_text     TEXT,
    ingested_at     DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS sentences (
    id              INTEGER PRIMARY KEY,
    document_id     INTEGER NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    position        INTEGER NOT NULL,
    text            TEXT NOT NULL UNIQUE,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_sentences_document_position
    ON sentences (document_id, position);

CREATE TABLE IF NOT EXISTS conversations (
    slug            TEXT PRIMARY KEY,
    question        TEXT NOT NULL,
    context         TEXT,
    answer          TEXT,
    error           TEXT,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    updated_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);
"""

# (version, script). Only ever append.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def current_version(conn: sqlite3.Connection) -> int:
    """Highest applied migration, 0 for a fresh database."""
    conn.execute(_VERSION_TABLE_SQL)
    conn.commit()
    row = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return row[0]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Bring *conn* up to the newest schema. Safe to call on any version."""
    applied = current_version(conn)
    for version, script in (m for m in MIGRATIONS if m[0] > applied):
        # executescript() commits any open transaction first.
        conn.executescript(script)
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
        conn.commit()
