"""Every embedding and completion request goes through LiteLLM here.

Requests are sent once unless ``num_retries`` says otherwise; LiteLLM
exceptions are not wrapped. Commands call validate_api_key() up front so a
missing key fails before any provider traffic.
"""

from __future__ import annotations

import os

import litellm

litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

# provider prefix → env var holding its key; None means no key (local models)
_KEY_ENV_VARS: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """'anthropic/claude-3-5-sonnet' → 'anthropic'; bare model names are OpenAI's."""
    head, sep, _ = model.partition("/")
    return head.lower() if sep else "openai"


def key_env_var(provider: str) -> str | None:
    """Env var holding *provider*'s key (None: no key needed).

    Providers not in the table are assumed to read ``<PROVIDER>_API_KEY``.
    """
    provider = provider.lower()
    return _KEY_ENV_VARS.get(provider, f"{provider.upper()}_API_KEY")


def validate_api_key(model: str) -> None:
    """Raise EnvironmentError if the key *model*'s provider needs is unset."""
    provider = provider_of(model)
    env_var = key_env_var(provider)
    if env_var and not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


async def acomplete(
    model: str,
    prompt: str,
    max_tokens: int = 1024,
    temperature: float = 0.0,
    num_retries: int = 0,
    timeout: float | None = None,
) -> str:
    """Send *prompt* as the only (user) message and return the first choice.

    Args:
        model: LiteLLM model string (provider/model format).
        prompt: Fully rendered prompt.
        max_tokens: Output token cap.
        temperature: Sampling temperature.
        num_retries: LiteLLM-level retries.
        timeout: Per-request timeout in seconds, passed to the provider.

    Returns:
        The first choice's message text; "" when the provider returns none.
    """
    response = await litellm.acompletion(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
        timeout=timeout,
    )
    return response.choices[0].message.content or ""


def _first_vector(response) -> list[float]:
    return response.data[0]["embedding"]


def embed(model: str, text: str, num_retries: int = 0) -> list[float]:
    """Embed one string (blocking; used by the ingest job)."""
    return _first_vector(litellm.embedding(model=model, input=[text], num_retries=num_retries))


async def aembed(
    model: str, text: str, num_retries: int = 0, timeout: float | None = None
) -> list[float]:
    """Embed one string without blocking the event loop (conversation engine)."""
    response = await litellm.aembedding(
        model=model, input=[text], num_retries=num_retries, timeout=timeout
    )
    return _first_vector(response)
