"""Duplicate detection and merge commands."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from consolidation.entities import EntityKind, RunMode
from consolidation.errors import CandidateLoadError, PlanningError
from consolidation.pipeline.deduplication.main import consolidate_entities

from .common import CLIError, get_state, mode_from_flags, render_reports, resolve_path


app = typer.Typer(
    add_completion=False,
    help="Find duplicate records and merge them into a single survivor.",
    no_args_is_help=True,
)

_DRY_RUN = typer.Option(False, "--dry-run", help="Report duplicate groups and planned actions without writing.")
_MERGE = typer.Option(False, "--merge", help="Merge every duplicate group into its survivor.")
_REPORT = typer.Option(None, "--report", help="Write the JSON run report to this path.")


def _run(ctx: typer.Context, kinds: Optional[List[EntityKind]], dry_run: bool, merge: bool, report: Optional[Path]) -> None:
    state = get_state(ctx)
    mode = mode_from_flags(dry_run, merge)
    try:
        reports = consolidate_entities(
            kinds,
            mode,
            report_path=resolve_path(report, must_exist=False) if report is not None else None,
            settings=state.settings,
            session_factory=state.session_factory,
            run_id=state.run_id,
        )
    except (CandidateLoadError, PlanningError) as exc:
        raise CLIError(str(exc)) from exc

    render_reports(reports, show_groups=state.verbose or mode is RunMode.DRY_RUN)
    if not all(item.success for item in reports):
        raise typer.Exit(code=1)


def _jobs_command(
    ctx: typer.Context,
    dry_run: bool = _DRY_RUN,
    merge: bool = _MERGE,
    report: Optional[Path] = _REPORT,
) -> None:
    _run(ctx, [EntityKind.JOB], dry_run, merge, report)


def _branches_command(
    ctx: typer.Context,
    dry_run: bool = _DRY_RUN,
    merge: bool = _MERGE,
    report: Optional[Path] = _REPORT,
) -> None:
    _run(ctx, [EntityKind.BRANCH], dry_run, merge, report)


def _salespersons_command(
    ctx: typer.Context,
    dry_run: bool = _DRY_RUN,
    merge: bool = _MERGE,
    report: Optional[Path] = _REPORT,
) -> None:
    _run(ctx, [EntityKind.SALESPERSON], dry_run, merge, report)


def _all_command(
    ctx: typer.Context,
    dry_run: bool = _DRY_RUN,
    merge: bool = _MERGE,
    report: Optional[Path] = _REPORT,
) -> None:
    """Branches first, then jobs, then salespersons; disabled types are skipped."""

    _run(ctx, None, dry_run, merge, report)


app.command("jobs")(_jobs_command)
app.command("branches")(_branches_command)
app.command("salespersons")(_salespersons_command)
app.command("all")(_all_command)
