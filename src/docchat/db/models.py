"""Domain models for the docchat database layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass
class Document:
    path: str
    parsed_text: str | None = None
    ingested_at: str | None = None
    id: int | None = None  # set after insert


@dataclass(frozen=True)
class Sentence:
    """One embedded sentence; immutable once written."""

    id: int
    document_id: int
    position: int
    text: str


class ConversationState(str, Enum):
    CREATED = "created"
    CONTEXT_READY = "context_ready"
    ANSWERED = "answered"
    FAILED = "failed"


@dataclass(frozen=True)
class Conversation:
    """Snapshot of a persisted conversation.

    Each of ``context``, ``answer`` and ``error`` goes from None to a value at
    most once; the state is derived from which of them are present.
    """

    slug: str
    question: str
    context: str | None = None
    answer: str | None = None
    error: str | None = None

    @property
    def state(self) -> ConversationState:
        if self.answer is not None:
            return ConversationState.ANSWERED
        if self.error is not None:
            return ConversationState.FAILED
        if self.context is not None:
            return ConversationState.CONTEXT_READY
        return ConversationState.CREATED

    @property
    def is_terminal(self) -> bool:
        return self.state in (ConversationState.ANSWERED, ConversationState.FAILED)
