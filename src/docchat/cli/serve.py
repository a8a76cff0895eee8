"""docchat serve: run the HTTP conversation service.

The corpus repository and the conversation store get their own connections
to the same database file; both are closed when the server stops.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from docchat.api.app import create_app
from docchat.chat.orchestrator import ConversationOrchestrator, OrchestratorConfig
from docchat.cli.errors import err_config, err_no_api_key, err_no_db, err_no_embeddings
from docchat.config import ConfigError, DocchatConfig, load_config
from docchat.db.connection import Database
from docchat.db.conversations import ConversationStore
from docchat.db.repository import CorpusRepository
from docchat.db.schema import initialize
from docchat.db.vectors import model_to_slug, vec_table_exists, vec_table_name
from docchat.rag.llm_client import provider_of, validate_api_key

console = Console()


def serve_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the docchat database."),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", help="Interface to bind (default: server.host)."),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", help="Port to bind (default: server.port)."),
    ] = None,
) -> None:
    """Serve POST /api/v0/chat and GET /api/v0/conversations/{slug}."""
    cfg = load_cli_config()
    db_path = db or Path(cfg.server.db)
    check_runtime(cfg, db_path)

    orchestrator, conns = open_orchestrator(cfg, db_path)
    try:
        app = create_app(orchestrator)
        bind_host = host or cfg.server.host
        bind_port = port or cfg.server.port
        console.print(f"[green]✓[/] docchat serving on http://{bind_host}:{bind_port}")
        uvicorn.run(app, host=bind_host, port=bind_port)
    finally:
        for conn in conns:
            conn.close()


# ------------------------------------------------------------------
# Shared runtime helpers (also used by `docchat ask`)
# ------------------------------------------------------------------


def load_cli_config() -> DocchatConfig:
    """Load config, turning ConfigError into a user-facing exit."""
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)


def check_runtime(cfg: DocchatConfig, db_path: Path) -> None:
    """Exit early when something ask / serve needs is missing."""
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    with Database(db_path) as conn:
        embedded = vec_table_exists(conn, vec_table_name(model_to_slug(cfg.embedding.model)))
    if not embedded:
        console.print(err_no_embeddings(cfg.embedding.model))
        raise typer.Exit(1)
    for model in (cfg.embedding.model, cfg.generation.model):
        try:
            validate_api_key(model)
        except EnvironmentError:
            console.print(err_no_api_key(provider_of(model)))
            raise typer.Exit(1)


def open_orchestrator(
    cfg: DocchatConfig, db_path: Path
) -> tuple[ConversationOrchestrator, list[sqlite3.Connection]]:
    """Open the corpus and conversation connections and wire the orchestrator."""
    corpus_conn = Database(db_path).connect()
    initialize(corpus_conn)
    conversation_conn = Database(db_path).connect()
    orchestrator = ConversationOrchestrator(
        ConversationStore(conversation_conn),
        CorpusRepository(corpus_conn),
        OrchestratorConfig.from_config(cfg),
    )
    return orchestrator, [corpus_conn, conversation_conn]
