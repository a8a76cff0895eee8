"""User-facing error text for the CLI.

Each helper returns rich markup naming the cause and the command or setting
that fixes it; callers print it and exit non-zero.
"""

from __future__ import annotations

from docchat.rag.llm_client import key_env_var

_INGEST_HINT = "docchat ingest --source <docs-dir> --recursive"


def err_no_api_key(provider: str) -> str:
    """e.g. ``No API key for 'openai'.  export OPENAI_API_KEY=sk-...``"""
    env_var = key_env_var(provider) or f"{provider.upper()}_API_KEY"
    return f"[red]Error:[/] No API key for '{provider}'.\n  export {env_var}=sk-..."


def err_no_db(db_path: str = ".docchat.db") -> str:
    return f"[red]Error:[/] No database found at '{db_path}'.\n  Build it first:  {_INGEST_HINT}"


def err_no_embeddings(model: str) -> str:
    """The vec table for *model* is missing: the corpus was embedded with another model."""
    return (
        f"[red]Error:[/] No embeddings stored for model '{model}'.\n"
        f"  Re-run ingest with this embedding model:  {_INGEST_HINT}"
    )


def err_config(message: str) -> str:
    return f"[red]Error:[/] Invalid configuration.\n  {message}"


def err_conversation_failed(slug: str, reason: str) -> str:
    return (
        f"[red]Error:[/] Conversation '{slug}' failed: {reason}\n"
        "  Check the provider status and API key, then ask again."
    )


def err_conversation_not_found(slug: str) -> str:
    return f"[yellow]Conversation not found:[/] '{slug}'.\n  Start it with:  POST /api/v0/chat"


def err_conversation_stalled(slug: str, state: str) -> str:
    """A stored conversation is mid-pipeline but nothing is resolving it."""
    return (
        f"[red]Error:[/] Conversation '{slug}' is still '{state}' and nothing finished it.\n"
        "  The process that started it may have stopped.\n"
        "  Ask again under a new slug:  docchat ask QUESTION --slug <new-slug>"
    )
