"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from docchat.rag.llm_client import (
    acomplete,
    aembed,
    embed,
    key_env_var,
    provider_of,
    validate_api_key,
)


# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("openai/gpt-4o")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/gpt-4o")


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/llama3")


def test_validate_api_key_unknown_provider_uses_provider_name(monkeypatch):
    monkeypatch.delenv("FOOBAR_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="FOOBAR_API_KEY"):
        validate_api_key("foobar/some-model")


def test_validate_api_key_bare_model_treated_as_openai(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("gpt-4o")


@pytest.mark.parametrize("model, provider", [
    ("openai/gpt-4o", "openai"),
    ("Anthropic/claude-3-5-sonnet-20241022", "anthropic"),
    ("gpt-4o", "openai"),
])
def test_provider_of(model, provider):
    assert provider_of(model) == provider


def test_key_env_var():
    assert key_env_var("Anthropic") == "ANTHROPIC_API_KEY"
    assert key_env_var("ollama") is None
    assert key_env_var("foobar") == "FOOBAR_API_KEY"


# ------------------------------------------------------------------
# acomplete()
# ------------------------------------------------------------------


def _completion(content):
    response = MagicMock()
    response.choices[0].message.content = content
    return response


@pytest.mark.asyncio
async def test_acomplete_returns_first_choice():
    with patch(
        "docchat.rag.llm_client.litellm.acompletion",
        new=AsyncMock(return_value=_completion("A hazard is a tile.")),
    ):
        assert await acomplete("openai/gpt-4o", "prompt") == "A hazard is a tile."


@pytest.mark.asyncio
async def test_acomplete_none_content_becomes_empty_string():
    with patch(
        "docchat.rag.llm_client.litellm.acompletion",
        new=AsyncMock(return_value=_completion(None)),
    ):
        assert await acomplete("openai/gpt-4o", "prompt") == ""


@pytest.mark.asyncio
async def test_acomplete_sends_single_user_message():
    mock = AsyncMock(return_value=_completion("ok"))
    with patch("docchat.rag.llm_client.litellm.acompletion", new=mock):
        await acomplete("openai/gpt-4o", "the prompt", max_tokens=50, timeout=7.0)

    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o"
    assert kwargs["messages"] == [{"role": "user", "content": "the prompt"}]
    assert kwargs["max_tokens"] == 50
    assert kwargs["num_retries"] == 0
    assert kwargs["timeout"] == 7.0


@pytest.mark.asyncio
async def test_acomplete_propagates_provider_error():
    with patch(
        "docchat.rag.llm_client.litellm.acompletion",
        new=AsyncMock(side_effect=RuntimeError("provider down")),
    ):
        with pytest.raises(RuntimeError, match="provider down"):
            await acomplete("openai/gpt-4o", "prompt")


# ------------------------------------------------------------------
# embed() / aembed()
# ------------------------------------------------------------------


def _embedding(vector):
    response = MagicMock()
    response.data = [{"embedding": vector}]
    return response


def test_embed_returns_vector():
    with patch(
        "docchat.rag.llm_client.litellm.embedding", return_value=_embedding([0.1, 0.2])
    ) as mock:
        assert embed("openai/text-embedding-3-small", "text") == [0.1, 0.2]
    assert mock.call_args.kwargs["input"] == ["text"]


@pytest.mark.asyncio
async def test_aembed_returns_vector():
    mock = AsyncMock(return_value=_embedding([0.3, 0.4]))
    with patch("docchat.rag.llm_client.litellm.aembedding", new=mock):
        result = await aembed("openai/text-embedding-3-small", "question", timeout=3.0)

    assert result == [0.3, 0.4]
    assert mock.call_args.kwargs["input"] == ["question"]
    assert mock.call_args.kwargs["timeout"] == 3.0
