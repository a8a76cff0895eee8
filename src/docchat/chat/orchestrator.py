"""Conversation orchestrator: start / poll, plus the background resolve pipeline.

State machine (derived from the stored record, see Conversation.state):

    start ──► CREATED ──context──► CONTEXT_READY ──answer──► ANSWERED
                 │                       │
                 └──────── error ────────┴──► FAILED

``start`` returns as soon as the record is inserted. The resolve pipeline runs
as one independent asyncio task per new conversation: embed the question,
k-NN, assemble context, persist it, render the prompt, complete, persist the
first choice. Steps run strictly in order, so the context is always written
before an answer is attempted. Nothing joins or cancels these tasks; callers
observe progress only by polling ``get_conversation``.

A failing step ends the task. The failure reason is written to the record
(terminal FAILED); whatever was already stored is kept.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from docchat.config import DocchatConfig
from docchat.db.conversations import ConversationStore
from docchat.db.models import Conversation
from docchat.db.repository import CorpusRepository
from docchat.rag.assembler import ContextWindow, assemble
from docchat.rag.llm_client import acomplete
from docchat.rag.retriever import RetrieverConfig, retrieve
from docchat.rag.templates import PromptConfig, render

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorConfig:
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    window: ContextWindow = field(default_factory=ContextWindow)
    prompt: PromptConfig = field(default_factory=PromptConfig)
    generation_model: str = "openai/gpt-4o"
    max_tokens: int = 1024
    temperature: float = 0.0
    num_retries: int = 0
    request_timeout: float | None = 60.0

    @classmethod
    def from_config(cls, cfg: DocchatConfig) -> OrchestratorConfig:
        return cls(
            retriever=RetrieverConfig(
                embedding_model=cfg.embedding.model,
                top_k=cfg.retrieval.top_k,
                num_retries=cfg.server.num_retries,
                timeout=cfg.server.request_timeout,
            ),
            window=ContextWindow(
                before=cfg.retrieval.window_before,
                after=cfg.retrieval.window_after,
            ),
            prompt=PromptConfig.from_project(cfg.project),
            generation_model=cfg.generation.model,
            max_tokens=cfg.generation.max_tokens,
            temperature=cfg.generation.temperature,
            num_retries=cfg.server.num_retries,
            request_timeout=cfg.server.request_timeout,
        )


class ConversationOrchestrator:
    """Drives conversations from creation to an answer.

    Args:
        store: Conversation store (the only place state lives).
        repo: Corpus repository for k-NN and window lookups.
        config: Retrieval, prompt, and completion settings.
    """

    def __init__(
        self,
        store: ConversationStore,
        repo: CorpusRepository,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self._store = store
        self._repo = repo
        self._config = config or OrchestratorConfig()
        self._tasks: dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    async def start(self, slug: str, question: str) -> Conversation:
        """Create the conversation (idempotent) and launch its resolve pipeline.

        Returns the snapshot as persisted right now. Restarting an existing
        slug leaves its record alone and launches nothing.
        """
        conversation, created = await asyncio.to_thread(self._store.create, slug, question)
        if created:
            logger.info("conversation %s created", slug)
            task = asyncio.create_task(self._resolve(slug, question), name=f"resolve:{slug}")
            self._tasks[slug] = task
            task.add_done_callback(lambda _t, s=slug: self._tasks.pop(s, None))
        else:
            logger.debug("conversation %s already exists (%s)", slug, conversation.state.value)
        return conversation

    async def get_conversation(self, slug: str) -> Conversation:
        """Return the persisted snapshot for *slug*.

        Raises:
            ConversationNotFound: If *slug* was never started.
        """
        return await asyncio.to_thread(self._store.get, slug)

    def pending(self) -> list[str]:
        """Slugs whose resolve pipeline is still running."""
        return sorted(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight resolve pipeline to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Resolve pipeline
    # ------------------------------------------------------------------

    async def _resolve(self, slug: str, question: str) -> None:
        try:
            context = await self._resolve_context(question)
            await asyncio.to_thread(self._store.set_context, slug, context)
            logger.info("conversation %s context ready (%d chars)", slug, len(context))

            answer = await self._resolve_answer(context, question)
            await asyncio.to_thread(self._store.set_answer, slug, answer)
            logger.info("conversation %s answered", slug)
        except Exception as exc:
            logger.exception("resolve pipeline failed for conversation %s", slug)
            await self._record_failure(slug, exc)

    async def _resolve_context(self, question: str) -> str:
        cfg = self._config
        hits = await asyncio.wait_for(
            retrieve(question, self._repo, cfg.retriever),
            timeout=cfg.request_timeout,
        )
        return await asyncio.to_thread(assemble, hits, self._repo, cfg.window)

    async def _resolve_answer(self, context: str, question: str) -> str:
        cfg = self._config
        prompt = render(context, question, cfg.prompt)
        return await asyncio.wait_for(
            acomplete(
                cfg.generation_model,
                prompt,
                max_tokens=cfg.max_tokens,
                temperature=cfg.temperature,
                num_retries=cfg.num_retries,
                timeout=cfg.request_timeout,
            ),
            timeout=cfg.request_timeout,
        )

    async def _record_failure(self, slug: str, exc: BaseException) -> None:
        if isinstance(exc, TimeoutError):
            reason = "TimeoutError: provider call exceeded the request timeout"
        else:
            reason = f"{type(exc).__name__}: {exc}"
        try:
            await asyncio.to_thread(self._store.mark_failed, slug, reason)
        except Exception:
            # The record keeps its last good state; nothing else can be done here.
            logger.exception("could not record failure for conversation %s", slug)
