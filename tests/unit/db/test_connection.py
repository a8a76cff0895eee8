"""Tests for Database connection layer."""

from __future__ import annotations

import threading

from docchat.db.connection import Database


def test_connect_creates_file(tmp_path):
    db_path = tmp_path / ".docchat.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_sqlite_vec_loads(tmp_path):
    conn = Database(tmp_path / ".docchat.db").connect()
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()
    assert version.startswith("v")


def test_foreign_keys_enabled(tmp_path):
    conn = Database(tmp_path / ".docchat.db").connect()
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    conn.close()


def test_wal_mode(tmp_path):
    conn = Database(tmp_path / ".docchat.db").connect()
    assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
    conn.close()


def test_connection_usable_from_worker_thread(tmp_path):
    conn = Database(tmp_path / ".docchat.db").connect()
    result: list[int] = []

    def _worker() -> None:
        result.append(conn.execute("SELECT 1").fetchone()[0])

    t = threading.Thread(target=_worker)
    t.start()
    t.join()
    conn.close()
    assert result == [1]


def test_context_manager_closes(tmp_path):
    db = Database(tmp_path / ".docchat.db")
    with db as conn:
        assert conn.execute("SELECT 1").fetchone()[0] == 1
    assert db._conn is None
