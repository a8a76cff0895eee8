"""docchat CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer

from docchat.cli.ask import ask_cmd, show_cmd
from docchat.cli.ingest import ingest_cmd
from docchat.cli.serve import serve_cmd
from docchat.cli.status import status_cmd

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

app = typer.Typer(
    name="docchat",
    help=(
        "Ask questions about a markdown knowledge base.\n\n"
        "Build the corpus with `docchat ingest`, then either run the HTTP "
        "service with `docchat serve` or ask from the terminal with `docchat ask`."
    ),
    add_completion=False,
)


def _print_version() -> None:
    try:
        installed = importlib.metadata.version("docchat")
    except importlib.metadata.PackageNotFoundError:
        installed = "dev"
    typer.echo(f"docchat {installed}")


def _on_version_flag(requested: bool) -> None:
    if requested:
        _print_version()
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."),
    ] = "WARNING",
    version: Annotated[
        bool,
        typer.Option("--version", is_eager=True, callback=_on_version_flag, help="Print version."),
    ] = False,
) -> None:
    """Global options; logging goes to stderr via the stdlib logging module."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format=_LOG_FORMAT)


for _name, _command in (
    ("ingest", ingest_cmd),
    ("ask", ask_cmd),
    ("show", show_cmd),
    ("serve", serve_cmd),
    ("status", status_cmd),
):
    app.command(_name)(_command)


@app.command("version")
def version_cmd() -> None:
    """Print the installed docchat version."""
    _print_version()


if __name__ == "__main__":
    app()
