"""docchat database layer."""

from docchat.db.connection import Database
from docchat.db.conversations import ConversationNotFound, ConversationStore
from docchat.db.migrations import MIGRATIONS, run_migrations
from docchat.db.repository import CorpusRepository
from docchat.db.schema import initialize
from docchat.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ConversationNotFound",
    "ConversationStore",
    "CorpusRepository",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
