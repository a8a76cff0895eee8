"""docchat ask / show: the conversation flow from the terminal.

``ask`` starts a conversation under a fresh slug (or --slug) and polls it
every ``server.poll_interval`` seconds until it is answered or failed, the
same way an HTTP client polls GET /api/v0/conversations/{slug}.
``show`` prints one stored conversation without starting anything.
"""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from docchat.chat.orchestrator import ConversationOrchestrator
from docchat.cli.errors import (
    err_conversation_failed,
    err_conversation_not_found,
    err_conversation_stalled,
    err_no_db,
)
from docchat.cli.serve import check_runtime, load_cli_config, open_orchestrator
from docchat.db.connection import Database
from docchat.db.conversations import ConversationNotFound, ConversationStore
from docchat.db.models import Conversation, ConversationState
from docchat.db.schema import initialize

console = Console()


def ask_cmd(
    question: Annotated[str, typer.Argument(help="Question to ask about the corpus.")],
    slug: Annotated[
        str | None,
        typer.Option("--slug", help="Conversation slug (default: a random UUID)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the docchat database."),
    ] = None,
    show_context: Annotated[
        bool,
        typer.Option("--show-context", help="Print the retrieved context before the answer."),
    ] = False,
) -> None:
    """Ask one question and wait for the answer."""
    cfg = load_cli_config()
    db_path = db or Path(cfg.server.db)
    check_runtime(cfg, db_path)

    conversation_slug = slug or str(uuid.uuid4())
    orchestrator, conns = open_orchestrator(cfg, db_path)
    try:
        with console.status("Thinking…"):
            conversation = asyncio.run(
                _ask(
                    orchestrator,
                    conversation_slug,
                    question,
                    cfg.server.poll_interval,
                    # embedding and completion calls, each bounded by request_timeout
                    unowned_timeout=2 * cfg.server.request_timeout,
                )
            )
    finally:
        for conn in conns:
            conn.close()

    if not conversation.is_terminal:
        console.print(err_conversation_stalled(conversation.slug, conversation.state.value))
        raise typer.Exit(1)
    _print_conversation(conversation, show_context=show_context)
    if conversation.state is ConversationState.FAILED:
        raise typer.Exit(1)


def show_cmd(
    slug: Annotated[str, typer.Argument(help="Conversation slug.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the docchat database."),
    ] = None,
    show_context: Annotated[
        bool,
        typer.Option("--show-context", help="Print the stored context."),
    ] = False,
) -> None:
    """Show the stored state of one conversation."""
    cfg = load_cli_config()
    db_path = db or Path(cfg.server.db)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    with Database(db_path) as conn:
        initialize(conn)
        try:
            conversation = ConversationStore(conn).get(slug)
        except ConversationNotFound:
            console.print(err_conversation_not_found(slug))
            raise typer.Exit(1)

    console.print(f"State: [bold]{conversation.state.value}[/]")
    _print_conversation(conversation, show_context=show_context)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


async def _ask(
    orchestrator: ConversationOrchestrator,
    slug: str,
    question: str,
    poll_interval: float,
    unowned_timeout: float,
) -> Conversation:
    """Start *slug* and poll until it reaches a terminal state.

    A slug this process is not resolving (another ``docchat serve`` owns it,
    or its process died) is polled for at most *unowned_timeout* seconds;
    the last snapshot is returned, possibly still non-terminal.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + unowned_timeout
    conversation = await orchestrator.start(slug, question)
    while not conversation.is_terminal:
        if slug not in orchestrator.pending() and loop.time() >= deadline:
            # re-read: an own task may have finished since the last snapshot
            return await orchestrator.get_conversation(slug)
        await asyncio.sleep(poll_interval)
        conversation = await orchestrator.get_conversation(slug)
    return conversation


def _print_conversation(conversation: Conversation, show_context: bool) -> None:
    if show_context and conversation.context is not None:
        console.print(Panel(conversation.context, title="[bold]Context[/]", expand=False))
    if conversation.answer is not None:
        console.print(Markdown(conversation.answer))
    elif conversation.error is not None:
        console.print(err_conversation_failed(conversation.slug, conversation.error))
    else:
        console.print("[dim]No answer yet.[/]")
