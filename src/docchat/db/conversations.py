"""Conversation store: the single source of truth for conversation state.

Every read and write runs under one lock, so the synchronous request path
and any number of background resolve tasks can share a connection. Each
transition is guarded in SQL, so a field that has been set is never
overwritten or cleared.
"""

from __future__ import annotations

import sqlite3
import threading

from docchat.db.models import Conversation, ConversationState


class ConversationNotFound(LookupError):
    """Raised when no conversation exists for a slug."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"No conversation found for slug '{slug}'")
        self.slug = slug


class ConversationStore:
    """Persisted conversations keyed by slug."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    def create(self, slug: str, question: str) -> tuple[Conversation, bool]:
        """Insert a conversation unless *slug* already exists.

        Returns:
            (snapshot, created). When the slug already exists the stored
            record is returned untouched and ``created`` is False.
        """
        with self._lock:
            cur = self._conn.execute(
                "INSERT OR IGNORE INTO conversations (slug, question) VALUES (?, ?)",
                (slug, question),
            )
            self._conn.commit()
            row = self._select(slug)
        return _row_to_conversation(row), cur.rowcount == 1

    def get(self, slug: str) -> Conversation:
        """Return the current snapshot for *slug*.

        Raises:
            ConversationNotFound: If *slug* was never created.
        """
        with self._lock:
            row = self._select(slug)
        if row is None:
            raise ConversationNotFound(slug)
        return _row_to_conversation(row)

    def set_context(self, slug: str, context: str) -> bool:
        """Record the assembled context. Returns False if it was already set."""
        return self._update(
            "UPDATE conversations SET context = ?, updated_at = datetime('now') "
            "WHERE slug = ? AND context IS NULL",
            (context, slug),
        )

    def set_answer(self, slug: str, answer: str) -> bool:
        """Record the answer. Only applies once, and only after the context."""
        return self._update(
            "UPDATE conversations SET answer = ?, updated_at = datetime('now') "
            "WHERE slug = ? AND answer IS NULL AND context IS NOT NULL",
            (answer, slug),
        )

    def mark_failed(self, slug: str, reason: str) -> bool:
        """Record why the resolve pipeline stopped. Ignored once answered or failed."""
        return self._update(
            "UPDATE conversations SET error = ?, updated_at = datetime('now') "
            "WHERE slug = ? AND answer IS NULL AND error IS NULL",
            (reason, slug),
        )

    def count_by_state(self) -> dict[ConversationState, int]:
        """Return the number of conversations in each derived state."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT slug, question, context, answer, error FROM conversations"
            ).fetchall()
        counts = {state: 0 for state in ConversationState}
        for row in rows:
            counts[_row_to_conversation(row).state] += 1
        return counts

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _select(self, slug: str) -> sqlite3.Row | None:
        return self._conn.execute(
            "SELECT slug, question, context, answer, error FROM conversations WHERE slug = ?",
            (slug,),
        ).fetchone()

    def _update(self, sql: str, params: tuple) -> bool:
        with self._lock:
            cur = self._conn.execute(sql, params)
            self._conn.commit()
        return cur.rowcount == 1


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        slug=row["slug"],
        question=row["question"],
        context=row["context"],
        answer=row["answer"],
        error=row["error"],
    )
