"""Opening the docchat SQLite file with sqlite-vec available."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
)


class Database:
    """Handle on one docchat database file.

    ``connect()`` may be called repeatedly; each call returns an independent
    connection. Used as a context manager it owns a single connection and
    closes it on exit.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Return a new connection with sqlite-vec loaded and rows as sqlite3.Row.

        The connection is not bound to the opening thread, so it can be used
        from ``asyncio.to_thread`` workers; CorpusRepository and
        ConversationStore serialize access with their own locks.
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        try:
            sqlite_vec.load(conn)
        finally:
            conn.enable_load_extension(False)
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *exc_info: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
