"""docchat ingest pipeline: markdown sentence splitting and the sentence writer."""

from docchat.ingest.embedding_writer import EmbeddingConfig, SentenceWriter
from docchat.ingest.sentences import SentenceSplitter

__all__ = [
    "EmbeddingConfig",
    "SentenceSplitter",
    "SentenceWriter",
]
