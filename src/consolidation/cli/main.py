"""Primary Typer application wiring the consolidation CLI."""

from __future__ import annotations

from typing import Any, List, Optional

import typer
from rich.table import Table

from consolidation.utils.logging import configure_logging

from . import database, dedup, records
from .common import CLIError, configure_state, console, parse_override


class ConsolidationTyper(typer.Typer):
    """Typer app that reports ``CLIError`` as a one-line message and exit code 2."""

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().__call__(*args, **kwargs)
        except CLIError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            raise SystemExit(2) from exc


app = ConsolidationTyper(
    add_completion=False,
    help="""
    Detect duplicate jobs, branches and salespersons, preview or merge them,
    and maintain the records that feed the consolidation engine.
    """.strip(),
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Active configuration environment (development, testing, production).",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--override",
        "-o",
        metavar="KEY=VALUE",
        help="Configuration override in dotted.key=value notation (repeatable).",
    ),
    run_id: Optional[str] = typer.Option(
        None,
        "--run-id",
        help="Explicit run identifier; defaults to a generated value.",
        show_default=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Emit debug logging and per-group detail.",
    ),
) -> None:
    """Configure shared CLI state prior to executing subcommands."""

    overrides = [parse_override(item) for item in override]
    configure_state(
        ctx,
        environment=environment,
        overrides=overrides,
        run_id=run_id,
        verbose=verbose,
    )
    state = ctx.obj
    configure_logging(state.settings, level="DEBUG" if verbose else "INFO")

    if verbose:
        table = Table(title="CLI Context", show_header=False, box=None)
        table.add_row("Environment", state.environment)
        table.add_row("Run ID", state.run_id)
        table.add_row("Database", state.settings.database.url)
        table.add_row("Policy version", state.settings.policy_version)
        console.print(table)


app.add_typer(dedup.app, name="dedup", help="Duplicate detection and merging")
app.add_typer(records.salespersons_app, name="salespersons", help="Salesperson registration and housekeeping")
app.add_typer(records.branches_app, name="branches", help="Branch lookup and cleanup")
app.add_typer(database.app, name="db", help="Database management")
