"""Sentence writer: persist sentences and their LiteLLM embeddings.

For each sentence, in document order:
1. Skip it if its text is already stored (text is unique corpus-wide).
2. Otherwise embed it, then insert the sentence and its vector (rowid =
   sentence id) in one transaction.

A sentence row therefore never exists without its vector, and a failed
embedding leaves nothing behind, so re-running picks it up again. Up to
``concurrency`` embedding requests are in flight at once; the inserts stay on
the calling thread.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from docchat.db.repository import CorpusRepository
from docchat.rag.llm_client import embed, validate_api_key

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    concurrency: int = 5


class SentenceWriter:
    """Write sentences to the DB together with their embeddings.

    Args:
        repo:   Open CorpusRepository instance.
        config: Embedding configuration (model, dimensions, concurrency).
    """

    def __init__(self, repo: CorpusRepository, config: EmbeddingConfig | None = None) -> None:
        self._repo = repo
        self._config = config or EmbeddingConfig()

    def write(
        self,
        document_id: int,
        sentences: list[str],
        vec_table: str,
        on_progress: Callable[[int], None] | None = None,
    ) -> list[int]:
        """Store *sentences* for *document_id*. Returns the ids of newly inserted rows.

        *on_progress* receives the number of sentences handled so far.

        Raises:
            EnvironmentError: The embedding provider's key is not set.
            ValueError: The model returned vectors of the wrong size.
            Exception: Whatever the provider raised; sentences stored before
                the failure stay stored, the failing one is not written.
        """
        validate_api_key(self._config.model)

        def advance() -> None:
            nonlocal handled
            handled += 1
            if on_progress is not None:
                on_progress(handled)

        handled = 0
        todo: list[tuple[int, str]] = []
        queued: set[str] = set()
        for position, text in enumerate(sentences):
            if text in queued or self._repo.has_sentence_text(text):
                logger.debug("sentence already stored, skipping: %.60r", text)
                advance()
                continue
            queued.add(text)
            todo.append((position, text))

        new_ids: list[int] = []
        with ThreadPoolExecutor(max_workers=max(1, self._config.concurrency)) as pool:
            vectors = pool.map(self._embed, [text for _, text in todo])
            for (position, text), vector in zip(todo, vectors):
                sentence_id = self._repo.add_embedded_sentence(
                    vec_table, document_id, position, text, vector
                )
                if sentence_id is not None:
                    new_ids.append(sentence_id)
                advance()
        return new_ids

    def _embed(self, text: str) -> list[float]:
        vector = embed(self._config.model, text)
        if len(vector) != self._config.dimensions:
            raise ValueError(
                f"Embedding model '{self._config.model}' returned {len(vector)} dimensions, "
                f"expected {self._config.dimensions}. Set embedding.dimensions in docchat.yaml."
            )
        return vector
