"""sqlite-vec tables for sentence embeddings, one per embedding model.

Vectors from different models are never comparable, so each model gets its
own ``vec_sentences_<slug>`` table whose rowid is the sentence id.
"""

from __future__ import annotations

import re
import sqlite3

_VEC_PREFIX = "vec_sentences_"
_SLUG_RE = re.compile(r"[a-z0-9_]+")


def model_to_slug(model: str) -> str:
    """Lower-case *model* and replace anything outside [a-z0-9] with '_'.

    >>> model_to_slug("openai/text-embedding-3-small")
    'openai_text_embedding_3_small'
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    return _VEC_PREFIX + model_slug


def vec_table_exists(conn: sqlite3.Connection, table: str) -> bool:
    found = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    return found is not None


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create the vec0 table for *model_slug* unless it exists; return its name.

    The slug is interpolated into DDL, so only model_to_slug() output is accepted.

    Raises:
        ValueError: On an unsanitized slug or ``dimensions < 1``.
    """
    if not _SLUG_RE.fullmatch(model_slug):
        raise ValueError(f"Invalid model_slug '{model_slug}' — use model_to_slug() first.")
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    if vec_table_exists(conn, table):
        return table
    conn.execute(f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])")
    conn.commit()
    return table
