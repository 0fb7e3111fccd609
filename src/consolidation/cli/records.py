"""Salesperson and branch maintenance commands."""

from __future__ import annotations

import json
from typing import Optional

import typer
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from consolidation.entities import EntityKind
from consolidation.errors import CandidateLoadError
from consolidation.pipeline.deduplication.io import branch_cleanup_payload
from consolidation.pipeline.deduplication.processor import run_all
from consolidation.pipeline.registration import (
    deactivate_idle_salespersons,
    find_branch,
    register_salesperson,
)
from consolidation.store.session import read_session, transaction

from .common import CLIError, console, get_state, mode_from_flags, render_panel


salespersons_app = typer.Typer(
    add_completion=False,
    help="Register and tidy salesperson records.",
    no_args_is_help=True,
)

branches_app = typer.Typer(
    add_completion=False,
    help="Look up branches and run the branch cleanup.",
    no_args_is_help=True,
)


def _register_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Salesperson name as reported by the estimate source."),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch the estimate belongs to."),
) -> None:
    state = get_state(ctx)
    try:
        with transaction(state.session_factory, "register-salesperson") as session:
            result = register_salesperson(session, name, branch, policy=state.settings.policies.registration)
    except SQLAlchemyError as exc:
        raise CLIError(f"Failed to register salesperson: {exc}") from exc
    if result.salesperson is None:
        raise CLIError("A non-empty salesperson name is required")

    render_panel(
        "Salesperson",
        {
            "id": result.salesperson_id,
            "name": result.salesperson.name,
            "match": result.match.value if result.match else None,
            "score": round(result.score, 4),
            "created": result.created,
            "branch_id": result.branch_id,
            "branch_linked": result.branch_linked,
        },
    )


def _deactivate_idle_command(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="List idle salespersons without deactivating them."),
) -> None:
    state = get_state(ctx)
    with transaction(state.session_factory, "deactivate-idle-salespersons") as session:
        result = deactivate_idle_salespersons(session, state.settings.policies.housekeeping, dry_run=dry_run)

    table = Table(title="Idle Salespersons", box=None)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Without estimates", str(result.candidates))
    table.add_row("Deactivated" if not dry_run else "Would deactivate", str(len(result.deactivated)))
    table.add_row("Protected", str(len(result.protected)))
    console.print(table)
    if state.verbose and result.protected:
        render_panel("Protected", {str(key): value for key, value in result.protected.items()})


def _find_branch_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Branch name in any casing or spacing."),
) -> None:
    state = get_state(ctx)
    with read_session(state.session_factory) as session:
        branch = find_branch(session, name)
        if branch is None:
            raise CLIError(f"No branch matches {name!r}")
        render_panel("Branch", {"id": branch.id, "name": branch.name})


def _cleanup_payload_command(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute the payload without merging."),
    merge: bool = typer.Option(False, "--merge", help="Merge duplicate branches."),
) -> None:
    """Print the branch cleanup summary as JSON."""

    state = get_state(ctx)
    mode = mode_from_flags(dry_run, merge)
    try:
        [report] = run_all(
            state.session_factory,
            state.settings.policies,
            mode,
            kinds=[EntityKind.BRANCH],
            run_id=state.run_id,
        )
        payload = branch_cleanup_payload(report)
    except CandidateLoadError as exc:
        payload = branch_cleanup_payload(error=exc)
    console.print_json(json.dumps(payload))
    if not payload["success"]:
        raise typer.Exit(code=1)


salespersons_app.command("register")(_register_command)
salespersons_app.command("deactivate-idle")(_deactivate_idle_command)
branches_app.command("find")(_find_branch_command)
branches_app.command("cleanup-payload")(_cleanup_payload_command)
