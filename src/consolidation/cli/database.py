"""Database management commands."""

from __future__ import annotations

import typer

from consolidation.store.session import init_schema

from .common import console, get_state


app = typer.Typer(
    add_completion=False,
    help="Manage the relational store used by consolidation runs.",
    no_args_is_help=True,
)


def _init_command(ctx: typer.Context) -> None:
    """Create any missing tables."""

    state = get_state(ctx)
    init_schema(state.session_factory.kw["bind"])
    console.print(f"[green]Schema ready at {state.settings.database.url}[/green]")


app.command("init")(_init_command)
