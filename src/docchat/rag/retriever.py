"""Dense retriever: embed the question, k-NN over sentence embeddings.

Hits come back in ascending distance order, at most ``top_k`` of them. The
distance is whatever metric the vec table uses; nothing is converted here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from docchat.db.repository import CorpusRepository
from docchat.db.vectors import model_to_slug, vec_table_name
from docchat.rag.llm_client import aembed

logger = logging.getLogger(__name__)


@dataclass
class RetrieverConfig:
    """Configuration for the dense retriever.

    Attributes:
        embedding_model: LiteLLM embedding model string (provider/model format).
        top_k: Maximum number of sentence hits to return.
        num_retries: Retries for the embedding call.
        timeout: Per-request timeout in seconds for the embedding call.
    """

    embedding_model: str = "openai/text-embedding-3-small"
    top_k: int = 10
    num_retries: int = 0
    timeout: float | None = None

    @property
    def vec_table(self) -> str:
        return vec_table_name(model_to_slug(self.embedding_model))


@dataclass(frozen=True)
class Hit:
    sentence_id: int
    distance: float


async def retrieve(
    question: str,
    repo: CorpusRepository,
    config: RetrieverConfig,
) -> list[Hit]:
    """Embed *question* and return its nearest sentences, closest first.

    A corpus with nothing embedded for the configured model (no vec table
    yet) yields no hits, the same as an empty table.
    """
    vec_table = config.vec_table
    if not await asyncio.to_thread(repo.has_vec_table, vec_table):
        logger.warning(
            "no embeddings stored for model %s (%s missing); run docchat ingest",
            config.embedding_model,
            vec_table,
        )
        return []

    query_embedding = await aembed(
        config.embedding_model,
        question,
        num_retries=config.num_retries,
        timeout=config.timeout,
    )
    rows = await asyncio.to_thread(repo.nearest, vec_table, query_embedding, config.top_k)
    return [Hit(sentence_id=rowid, distance=distance) for rowid, distance in rows]
