"""docchat ingest: split markdown into sentences and embed them into the database.

Sources:
  .md / .markdown    → SentenceSplitter + SentenceWriter
  directory          → expanded to markdown files (--recursive for subdirs),
                       node_modules is always skipped

A document whose sentence split is already stored is not split again, and a
sentence whose text is already stored is neither re-inserted nor re-embedded.
"""

from __future__ import annotations

import fnmatch
import logging
import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from docchat.cli.errors import err_config, err_no_api_key
from docchat.config import ConfigError, load_config
from docchat.db.connection import Database
from docchat.db.repository import CorpusRepository
from docchat.db.schema import initialize
from docchat.db.vectors import ensure_vec_table, model_to_slug
from docchat.ingest.embedding_writer import EmbeddingConfig, SentenceWriter
from docchat.ingest.sentences import SentenceSplitter
from docchat.rag.llm_client import provider_of, validate_api_key

console = Console()
logger = logging.getLogger(__name__)

_MD_EXTS = {".md", ".markdown"}
_SKIP_DIRS = {"node_modules", ".git"}
_MAX_DEPTH = 10
# Stored parsed_text keeps one sentence per paragraph.
_PARSED_TEXT_SEPARATOR = "\n\n"


def ingest_cmd(
    source: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Markdown file or directory (repeatable)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the docchat database (created if missing)."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show what would be ingested without writing."),
    ] = False,
    recursive: Annotated[
        bool,
        typer.Option("--recursive", help="Recurse into subdirectories (max 10 levels)."),
    ] = False,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="Glob pattern to exclude (repeatable)."),
    ] = None,
) -> None:
    """Ingest markdown documents into the docchat knowledge base."""
    sources = source or []
    excludes = exclude or []

    if not sources:
        console.print("[red]Error:[/] No --source specified. Use --source PATH.")
        raise typer.Exit(1)

    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    files = _expand_sources(sources, recursive=recursive, exclude=excludes)
    if not files:
        console.print("[yellow]No markdown files found to ingest.[/]")
        raise typer.Exit(0)

    if dry_run:
        splitter = SentenceSplitter()
        for path in files:
            n = len(splitter.split(path.read_text(encoding="utf-8", errors="replace")))
            console.print(f"  [dim]{path}[/] → {n} sentences")
        console.print("[dim]Dry run — nothing written to DB[/]")
        return

    try:
        validate_api_key(cfg.embedding.model)
    except EnvironmentError:
        console.print(err_no_api_key(provider_of(cfg.embedding.model)))
        raise typer.Exit(1)

    conn = _open_db(db or Path(cfg.server.db))
    repo = CorpusRepository(conn)
    config = EmbeddingConfig(
        model=cfg.embedding.model,
        dimensions=cfg.embedding.dimensions,
        concurrency=cfg.embedding.concurrent_requests,
    )
    vec_table = ensure_vec_table(conn, model_to_slug(config.model), config.dimensions)
    writer = SentenceWriter(repo, config)

    failed: list[Path] = []
    try:
        for path in files:
            try:
                _process_file(path, repo, writer, vec_table)
            except Exception as exc:
                logger.debug("ingest failed for %s", path, exc_info=True)
                console.print(f"  [red]✗ Failed:[/] {type(exc).__name__}: {exc}")
                failed.append(path)
    finally:
        conn.close()

    if failed:
        console.print(
            f"\n[red]{len(failed)} of {len(files)} file(s) failed.[/] "
            "Re-run ingest to retry; stored sentences are kept."
        )
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Per-file pipeline
# ------------------------------------------------------------------


def _process_file(
    path: Path,
    repo: CorpusRepository,
    writer: SentenceWriter,
    vec_table: str,
) -> None:
    """Split (once) and embed a single markdown file."""
    console.print(f"\n[bold]→ {path}[/]")
    display_path = str(path)

    document_id = repo.add_document(display_path)
    document = repo.get_document(document_id)

    if document is not None and document.parsed_text is not None:
        sentences = [s for s in document.parsed_text.split(_PARSED_TEXT_SEPARATOR) if s]
        console.print(f"  [dim]↷ Using stored split — {len(sentences)} sentences[/]")
    else:
        content = path.read_text(encoding="utf-8", errors="replace")
        sentences = SentenceSplitter().split(content)
        repo.set_parsed_text(document_id, _PARSED_TEXT_SEPARATOR.join(sentences))
        console.print(f"  [green]✓[/] {len(sentences)} sentences")

    if not sentences:
        console.print("  [yellow]✗ No sentences produced (empty document)[/]")
        return

    columns = (SpinnerColumn(), TextColumn("Embedding {task.completed}/{task.total}"), BarColumn())
    with Progress(*columns, console=console, transient=True) as bar:
        task = bar.add_task("embed", total=len(sentences))
        new_ids = writer.write(
            document_id,
            sentences,
            vec_table,
            on_progress=lambda handled: bar.update(task, completed=handled),
        )

    skipped = len(sentences) - len(new_ids)
    console.print(
        f"  [green]✓[/] Embedded {len(new_ids)} new sentences"
        + (f" [dim]({skipped} already stored)[/]" if skipped else "")
    )


# ------------------------------------------------------------------
# Source expansion
# ------------------------------------------------------------------


def _is_markdown(path: Path) -> bool:
    return path.suffix.lower() in _MD_EXTS


def _expand_sources(sources: list[str], recursive: bool, exclude: list[str]) -> list[Path]:
    """Resolve ``--source`` values to markdown files, in argument order."""
    found: list[Path] = []
    for raw in sources:
        path = Path(raw)
        if path.is_file() and _is_markdown(path):
            found.append(path)
        elif path.is_dir():
            in_dir = _scan_dir(path, recursive=recursive, exclude=exclude)
            if not in_dir:
                console.print(f"[yellow]No markdown files found in directory:[/] {raw}")
            found += in_dir
        else:
            console.print(f"[red]✗ Skipping {raw}:[/] not a markdown file or directory")
    return found


def _scan_dir(root: Path, recursive: bool, exclude: list[str]) -> list[Path]:
    """Markdown files under *root*, depth-first in name order.

    Names matching an *exclude* glob are dropped, as are _SKIP_DIRS.
    Recursion stops _MAX_DEPTH levels below *root*.
    """

    def excluded(entry: Path) -> bool:
        return any(fnmatch.fnmatch(entry.name, pattern) for pattern in exclude)

    found: list[Path] = []
    pending: list[tuple[Path, int]] = [(root, 0)]
    while pending:
        directory, depth = pending.pop()
        try:
            children = sorted(directory.iterdir())
        except PermissionError:
            continue
        subdirs: list[tuple[Path, int]] = []
        for child in children:
            if excluded(child):
                continue
            if child.is_dir():
                if recursive and depth < _MAX_DEPTH and child.name not in _SKIP_DIRS:
                    subdirs.append((child, depth + 1))
            elif _is_markdown(child):
                found.append(child)
        pending.extend(reversed(subdirs))
    return found


# ------------------------------------------------------------------
# DB helpers
# ------------------------------------------------------------------


def _open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the database and run migrations."""
    conn = Database(db_path).connect()
    initialize(conn)
    return conn
