"""HTTP surface: the two conversation operations over JSON.

    POST /api/v0/chat                     start (idempotent per slug)
    GET  /api/v0/conversations/{slug}     poll; 404 for an unknown slug
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from docchat.chat.orchestrator import ConversationOrchestrator
from docchat.db.conversations import ConversationNotFound
from docchat.db.models import Conversation, ConversationState

API_PREFIX = "/api/v0"


class ChatRequest(BaseModel):
    conversation_slug: str
    question: str


class ConversationResponse(BaseModel):
    slug: str
    question: str
    context: str | None = None
    answer: str | None = None
    error: str | None = None
    state: ConversationState

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> ConversationResponse:
        return cls(
            slug=conversation.slug,
            question=conversation.question,
            context=conversation.context,
            answer=conversation.answer,
            error=conversation.error,
            state=conversation.state,
        )


router = APIRouter(prefix=API_PREFIX, tags=["Conversations"])


def _orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


@router.post("/chat", response_model=ConversationResponse)
async def start_chat(body: ChatRequest, request: Request) -> ConversationResponse:
    conversation = await _orchestrator(request).start(body.conversation_slug, body.question)
    return ConversationResponse.from_conversation(conversation)


@router.get("/conversations/{slug}", response_model=ConversationResponse)
async def get_conversation(slug: str, request: Request) -> ConversationResponse:
    try:
        conversation = await _orchestrator(request).get_conversation(slug)
    except ConversationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ConversationResponse.from_conversation(conversation)


def create_app(orchestrator: ConversationOrchestrator) -> FastAPI:
    """Build the FastAPI app around an existing orchestrator."""
    app = FastAPI(title="docchat", version="0.1.0")
    app.state.orchestrator = orchestrator
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.include_router(router)
    return app
