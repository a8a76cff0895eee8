"""docchat status: configured models, corpus size and conversations per state."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docchat.config import ConfigError, DocchatConfig, load_config
from docchat.db.connection import Database
from docchat.db.conversations import ConversationStore
from docchat.db.models import ConversationState
from docchat.db.repository import CorpusRepository
from docchat.db.schema import initialize
from docchat.db.vectors import model_to_slug, vec_table_name

console = Console()

_STATE_STYLE = {
    ConversationState.CREATED: "dim",
    ConversationState.CONTEXT_READY: "yellow",
    ConversationState.ANSWERED: "green",
    ConversationState.FAILED: "red",
}

# vec0 also creates <name>_chunks, <name>_rowids, ... shadow tables
_VEC_TABLES_SQL = (
    "SELECT name FROM sqlite_master"
    " WHERE type = 'table' AND name LIKE 'vec_sentences_%'"
    " AND sql LIKE 'CREATE VIRTUAL TABLE%' ORDER BY name"
)


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the docchat database."),
    ] = None,
) -> None:
    """Show knowledge base and conversation status."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(f"[yellow]Config ignored:[/] {exc}")
        cfg = DocchatConfig()

    db_path = db or Path(cfg.server.db)
    console.print(_project_panel(cfg, db_path))

    if not db_path.exists():
        hint = "[yellow]No database found.[/] Run [bold]docchat ingest[/] first."
        console.print(_panel("Knowledge Base", hint))
        return

    with Database(db_path) as conn:
        initialize(conn)
        console.print(_knowledge_panel(conn, cfg))
        console.print(_conversations_panel(ConversationStore(conn)))


def _panel(title: str, body) -> Panel:
    return Panel(body, title=f"[bold]{title}[/]", expand=False)


def _project_panel(cfg: DocchatConfig, db_path: Path) -> Panel:
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="dim")
    grid.add_column()
    db_label = str(db_path)
    if db_path.exists():
        db_label += f" ({db_path.stat().st_size / 2**20:.1f} MB)"
    grid.add_row("Subject", f"[bold]{cfg.project.subject}[/]")
    grid.add_row("Database", db_label)
    grid.add_row("Embedding", f"{cfg.embedding.model} ({cfg.embedding.dimensions} dims)")
    grid.add_row("Generation", cfg.generation.model)
    return _panel("Project", grid)


def _knowledge_panel(conn: sqlite3.Connection, cfg: DocchatConfig) -> Panel:
    repo = CorpusRepository(conn)
    tables = [row[0] for row in conn.execute(_VEC_TABLES_SQL)]
    body = (
        f"Documents: [bold]{repo.count_documents()}[/]  |  "
        f"Sentences: [bold]{repo.count_sentences():,}[/]  |  "
        f"Vec tables: [bold]{len(tables)}[/]"
    )
    body += "".join(f"\n  {name}" for name in tables)
    if vec_table_name(model_to_slug(cfg.embedding.model)) not in tables:
        body += f"\n[yellow]✗ No embeddings for {cfg.embedding.model}[/]"
    return _panel("Knowledge Base", body)


def _conversations_panel(store: ConversationStore) -> Panel:
    counts = store.count_by_state()
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("State")
    table.add_column("Count", justify="right")
    for state, count in counts.items():
        table.add_row(f"[{_STATE_STYLE[state]}]{state.value}[/]", str(count))
    title = f"[bold]Conversations[/] [dim]({sum(counts.values())})[/]"
    return Panel(table, title=title, expand=False)
