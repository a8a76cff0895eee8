"""Repository for the read-mostly corpus: documents, sentences, vec embeddings.

The ingestion job is the only writer. The conversation engine only reads,
possibly from several worker threads at once, so every method runs under a
per-repository lock.
"""

from __future__ import annotations

import json
import sqlite3
import threading

from docchat.db.models import Document, Sentence
from docchat.db.vectors import vec_table_exists


class CorpusRepository:
    """Data access layer for documents, sentences, and sentence embeddings.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see docchat.db.schema.initialize).
        """
        self._conn = conn
        self._lock = threading.Lock()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_document(self, path: str) -> int:
        """Insert a document by path if missing; return its id either way."""
        with self._lock:
            self._conn.execute(
                "INSERT OR IGNORE INTO documents (path) VALUES (?)", (path,)
            )
            self._conn.commit()
            row = self._conn.execute(
                "SELECT id FROM documents WHERE path = ?", (path,)
            ).fetchone()
        return row["id"]

    def get_document(self, document_id: int) -> Document | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, path, parsed_text, ingested_at FROM documents WHERE id = ?",
                (document_id,),
            ).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_path(self, path: str) -> Document | None:
        """Return a document by its path, or None if not found."""
        with self._lock:
            row = self._conn.execute(
                "SELECT id, path, parsed_text, ingested_at FROM documents WHERE path = ?",
                (path,),
            ).fetchone()
        return _row_to_document(row) if row else None

    def set_parsed_text(self, document_id: int, parsed_text: str) -> None:
        """Store the sentence-split text of a document."""
        with self._lock:
            self._conn.execute(
                "UPDATE documents SET parsed_text = ? WHERE id = ?",
                (parsed_text, document_id),
            )
            self._conn.commit()

    def count_documents(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    # ------------------------------------------------------------------
    # Sentences
    # ------------------------------------------------------------------

    def add_sentence(self, document_id: int, position: int, text: str) -> int | None:
        """Insert a sentence. Returns the new id, or None if the text already exists.

        Sentence text is unique across the whole corpus, which makes
        re-ingestion idempotent.
        """
        with self._lock:
            cur = self._conn.execute(
                """
                INSERT OR IGNORE INTO sentences (document_id, position, text)
                VALUES (?, ?, ?)
                """,
                (document_id, position, text),
            )
            self._conn.commit()
        return cur.lastrowid if cur.rowcount == 1 else None

    def has_sentence_text(self, text: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM sentences WHERE text = ?", (text,)
            ).fetchone()
        return row is not None

    def add_embedded_sentence(
        self,
        table: str,
        document_id: int,
        position: int,
        text: str,
        embedding: list[float],
    ) -> int | None:
        """Insert a sentence and its vector in one transaction.

        Returns the new sentence id, or None (and writes nothing) if the text
        already exists. Either both rows are committed or neither is.
        """
        with self._lock:
            try:
                cur = self._conn.execute(
                    "INSERT OR IGNORE INTO sentences (document_id, position, text) "
                    "VALUES (?, ?, ?)",
                    (document_id, position, text),
                )
                if cur.rowcount != 1:
                    self._conn.rollback()
                    return None
                sentence_id = cur.lastrowid
                self._conn.execute(
                    f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                    (sentence_id, json.dumps(embedding)),
                )
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
        return sentence_id

    def get_sentence(self, sentence_id: int) -> Sentence | None:
        """Return a sentence by id, or None if not found."""
        with self._lock:
            row = self._conn.execute(
                "SELECT id, document_id, position, text FROM sentences WHERE id = ?",
                (sentence_id,),
            ).fetchone()
        return _row_to_sentence(row) if row else None

    def sentences_in_window(self, document_id: int, start: int, end: int) -> list[Sentence]:
        """Return the sentences of *document_id* with position in [start, end], ascending."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id, document_id, position, text FROM sentences
                WHERE document_id = ? AND position BETWEEN ? AND ?
                ORDER BY position, id
                """,
                (document_id, start, end),
            ).fetchall()
        return [_row_to_sentence(r) for r in rows]

    def count_sentences(self, document_id: int | None = None) -> int:
        with self._lock:
            if document_id is None:
                return self._conn.execute("SELECT COUNT(*) FROM sentences").fetchone()[0]
            return self._conn.execute(
                "SELECT COUNT(*) FROM sentences WHERE document_id = ?", (document_id,)
            ).fetchone()[0]

    # ------------------------------------------------------------------
    # Vec embeddings
    # ------------------------------------------------------------------

    def add_embedding(self, table: str, sentence_id: int, embedding: list[float]) -> None:
        """Insert an embedding into a vec table with rowid = sentence id."""
        with self._lock:
            self._conn.execute(
                f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                (sentence_id, json.dumps(embedding)),
            )
            self._conn.commit()

    def has_vec_table(self, table: str) -> bool:
        with self._lock:
            return vec_table_exists(self._conn, table)

    def nearest(
        self, table: str, embedding: list[float], limit: int = 10
    ) -> list[tuple[int, float]]:
        """k-NN search. Returns (sentence_id, distance) sorted by ascending distance."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT rowid, distance FROM {table} WHERE embedding MATCH ? AND k = ? "
                "ORDER BY distance",
                (json.dumps(embedding), limit),
            ).fetchall()
        return [(r["rowid"], r["distance"]) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        path=row["path"],
        parsed_text=row["parsed_text"],
        ingested_at=row["ingested_at"],
    )


def _row_to_sentence(row: sqlite3.Row) -> Sentence:
    return Sentence(
        id=row["id"],
        document_id=row["document_id"],
        position=row["position"],
        text=row["text"],
    )
