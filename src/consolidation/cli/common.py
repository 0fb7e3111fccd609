"""Shared helpers used across the consolidation CLI modules."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Sequence
from uuid import uuid4

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.orm import Session, sessionmaker

from consolidation.config.settings import Settings
from consolidation.entities import RunMode, RunReport
from consolidation.errors import UsageError
from consolidation.pipeline.deduplication.processor import resolve_mode
from consolidation.store.session import create_session_factory
from consolidation.utils.logging import get_logger

console = Console()
_LOGGER = get_logger(module=__name__)


class CLIError(RuntimeError):
    """Exception raised for user-facing CLI errors."""


@dataclass(slots=True)
class CLIState:
    """State object attached to ``typer.Context`` for downstream commands."""

    settings: Settings
    overrides: Dict[str, Any]
    environment: str
    run_id: str
    verbose: bool
    _session_factory: sessionmaker[Session] | None = field(default=None, repr=False)

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            self._session_factory = create_session_factory(self.settings)
        return self._session_factory


def _merge_dict(dest: MutableMapping[str, Any], src: Mapping[str, Any]) -> None:
    for key, value in src.items():
        if isinstance(value, Mapping) and isinstance(dest.get(key), MutableMapping):
            _merge_dict(dest[key], value)  # type: ignore[index]
        elif isinstance(value, Mapping):
            dest[key] = dict(value)
        else:
            dest[key] = value


def parse_override(argument: str) -> Dict[str, Any]:
    """Parse dotted ``key=value`` overrides into nested dictionaries."""

    if "=" not in argument:
        raise typer.BadParameter("Overrides must be expressed as dotted.key=value")
    dotted, value = argument.split("=", 1)
    cursor: MutableMapping[str, Any] = {}
    current = cursor
    segments = [segment.strip() for segment in dotted.split(".") if segment.strip()]
    if not segments:
        raise typer.BadParameter("Override keys must not be empty")
    for segment in segments[:-1]:
        nested: Dict[str, Any] = {}
        current[segment] = nested
        current = nested
    try:
        parsed_value = json.loads(value)
    except json.JSONDecodeError:
        parsed_value = value
    current[segments[-1]] = parsed_value
    return cursor


def merge_overrides(overrides: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge override dictionaries using deep semantics."""

    result: Dict[str, Any] = {}
    for override in overrides:
        _merge_dict(result, override)
    return result


def resolve_settings(environment: str | None, overrides: Dict[str, Any]) -> Settings:
    """Construct :class:`Settings` with environment and overrides applied."""

    payload = dict(overrides)
    if environment:
        payload["environment"] = environment
    return Settings(**payload)


def configure_state(
    ctx: typer.Context,
    *,
    environment: str | None,
    overrides: Iterable[Dict[str, Any]],
    run_id: str | None,
    verbose: bool,
) -> None:
    """Populate ``ctx.obj`` with :class:`CLIState`."""

    merged = merge_overrides(overrides)
    settings = resolve_settings(environment, merged)
    resolved_run_id = run_id or f"cli-{uuid4().hex[:8]}"
    ctx.obj = CLIState(
        settings=settings,
        overrides=merged,
        environment=settings.environment,
        run_id=resolved_run_id,
        verbose=verbose,
    )


def get_state(ctx: typer.Context) -> CLIState:
    """Return the previously configured :class:`CLIState`.

    Commands must call this helper to access shared state; when the callback has
    not run an informative error is raised to guide developers.
    """

    if ctx.obj is None:
        raise CLIError("CLI context is not initialised")
    if not isinstance(ctx.obj, CLIState):  # pragma: no cover
        raise CLIError("Unexpected CLI context payload")
    return ctx.obj


def mode_from_flags(dry_run: bool, merge: bool) -> RunMode:
    try:
        return resolve_mode(dry_run=dry_run, merge=merge)
    except UsageError as exc:
        raise CLIError(str(exc)) from exc


def render_panel(title: str, content: Mapping[str, Any]) -> None:
    """Utility for rendering JSON-like mappings using Rich panels."""

    from rich.json import JSON as RichJSON

    console.print(Panel(RichJSON.from_data(content), title=title, border_style="cyan"))


def render_reports(reports: Sequence[RunReport], *, show_groups: bool) -> None:
    """Print a summary table and, optionally, one row per duplicate group."""

    summary = Table(title="Consolidation Summary", box=None)
    summary.add_column("Entity")
    summary.add_column("Mode")
    summary.add_column("Candidates", justify="right")
    summary.add_column("Groups", justify="right")
    summary.add_column("Merged", justify="right")
    summary.add_column("Deleted", justify="right")
    summary.add_column("Errors", justify="right")
    for report in reports:
        summary.add_row(
            report.kind.value,
            report.mode.value,
            str(report.candidates),
            str(report.groups_found),
            str(report.merged_count),
            str(report.deleted_count),
            str(len(report.errors)),
        )
    console.print(summary)

    if show_groups:
        for report in reports:
            if not report.clusters:
                continue
            table = Table(title=f"{report.kind.value} groups", box=None)
            table.add_column("Keep", justify="right")
            table.add_column("Merge", justify="right")
            table.add_column("Names")
            table.add_column("Actions", justify="right")
            table.add_column("Status")
            for cluster in report.clusters:
                status = "applied" if cluster.applied else ("failed" if cluster.error else "planned")
                table.add_row(
                    str(cluster.canonical_id),
                    ", ".join(str(loser) for loser in cluster.loser_ids),
                    " | ".join(member.name for member in cluster.group.members),
                    str(len(cluster.actions)),
                    status,
                )
            console.print(table)

    for report in reports:
        for error in report.errors:
            console.print(
                f"[bold red]{error.kind.value} {error.canonical_id}[/bold red] "
                f"members={error.member_ids}: {error.error}"
            )


def resolve_path(path: str | Path, *, must_exist: bool = True) -> Path:
    """Resolve a filesystem path relative to the project root when required."""

    target = Path(path).expanduser().resolve()
    if must_exist and not target.exists():
        raise CLIError(f"Path does not exist: {target}")
    return target
