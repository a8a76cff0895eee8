"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from docchat.db.connection import Database
from docchat.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".docchat.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path, monkeypatch):
    """Keep the user's global config, docchat.yaml and DOCCHAT_* variables out of tests."""
    monkeypatch.setattr("docchat.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.chdir(tmp_path)
    for var in ("DOCCHAT_GENERATION_MODEL", "DOCCHAT_EMBEDDING_MODEL", "DOCCHAT_DB"):
        monkeypatch.delenv(var, raising=False)
