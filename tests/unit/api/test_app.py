"""Tests for the HTTP surface (POST /api/v0/chat, GET /api/v0/conversations/{slug})."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from docchat.api.app import create_app
from docchat.db.conversations import ConversationNotFound
from docchat.db.models import Conversation


@pytest.fixture
def orchestrator() -> MagicMock:
    orch = MagicMock()
    orch.start = AsyncMock(return_value=Conversation(slug="abc", question="What is a hazard?"))
    orch.get_conversation = AsyncMock(
        return_value=Conversation(
            slug="abc",
            question="What is a hazard?",
            context="Hazards are squares.",
            answer="A damaging square.",
        )
    )
    return orch


@pytest.fixture
def client(orchestrator) -> TestClient:
    return TestClient(create_app(orchestrator))


def test_post_chat_starts_conversation(client, orchestrator):
    resp = client.post(
        "/api/v0/chat",
        json={"conversation_slug": "abc", "question": "What is a hazard?"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["slug"] == "abc"
    assert body["question"] == "What is a hazard?"
    assert body["context"] is None
    assert body["answer"] is None
    assert body["state"] == "created"
    orchestrator.start.assert_awaited_once_with("abc", "What is a hazard?")


def test_post_chat_requires_both_fields(client, orchestrator):
    resp = client.post("/api/v0/chat", json={"conversation_slug": "abc"})

    assert resp.status_code == 422
    orchestrator.start.assert_not_called()


def test_get_conversation_returns_snapshot(client, orchestrator):
    resp = client.get("/api/v0/conversations/abc")

    assert resp.status_code == 200
    body = resp.json()
    assert body["context"] == "Hazards are squares."
    assert body["answer"] == "A damaging square."
    assert body["error"] is None
    assert body["state"] == "answered"
    orchestrator.get_conversation.assert_awaited_once_with("abc")


def test_get_failed_conversation_exposes_error(client, orchestrator):
    orchestrator.get_conversation.return_value = Conversation(
        slug="abc", question="q", context="ctx", error="RuntimeError: provider down"
    )

    body = client.get("/api/v0/conversations/abc").json()
    assert body["state"] == "failed"
    assert body["error"] == "RuntimeError: provider down"
    assert body["answer"] is None


def test_get_unknown_conversation_is_404(client, orchestrator):
    orchestrator.get_conversation.side_effect = ConversationNotFound("missing")

    resp = client.get("/api/v0/conversations/missing")
    assert resp.status_code == 404
    assert "missing" in resp.json()["detail"]
