"""Entry points for the consolidation pipeline."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable, List, Sequence

from sqlalchemy.orm import Session, sessionmaker

from consolidation.config.settings import Settings, get_settings
from consolidation.entities import EntityKind, RunMode, RunReport
from consolidation.store.session import create_session_factory
from consolidation.utils.logging import get_logger

from .io import write_run_reports
from .profiles import build_profile
from .processor import resolve_mode, run_all


_LOGGER = get_logger(module=__name__)


def consolidate_entities(
    kinds: Iterable[EntityKind | str] | None,
    mode: RunMode | str,
    *,
    report_path: str | Path | None = None,
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
    run_id: str | None = None,
) -> List[RunReport]:
    """Run consolidation for ``kinds`` (all enabled types when ``None``)."""

    cfg = settings or get_settings()
    factory = session_factory or create_session_factory(cfg)
    reports = run_all(factory, cfg.policies, mode, kinds=kinds, run_id=run_id)

    if report_path is not None:
        config_snapshot = {
            "policy_version": cfg.policy_version,
            "environment": cfg.environment,
            "policies": {
                report.kind.value: build_profile(report.kind, cfg.policies).policy.model_dump(mode="json")
                for report in reports
            },
        }
        try:
            destination = write_run_reports(reports, report_path, config_used=config_snapshot)
        except OSError as exc:
            _LOGGER.exception("Failed to write run report", destination=str(report_path), error=str(exc))
            raise
        _LOGGER.info("Run report written", destination=str(destination))

    failures = sum(len(report.errors) for report in reports)
    _LOGGER.info(
        "Consolidation finished",
        kinds=[report.kind.value for report in reports],
        merged=sum(report.merged_count for report in reports),
        deleted=sum(report.deleted_count for report in reports),
        failures=failures,
    )
    return reports


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Consolidate duplicate jobs, branches and salespersons")
    parser.add_argument(
        "kinds",
        nargs="*",
        choices=[kind.value for kind in EntityKind],
        help="Entity types to consolidate (default: every enabled type)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Report duplicate groups without writing")
    parser.add_argument("--merge", action="store_true", help="Merge duplicate groups into their survivors")
    parser.add_argument("--report", type=Path, default=None, help="Write the JSON run report to this path")
    args = parser.parse_args(argv)

    mode = resolve_mode(dry_run=args.dry_run, merge=args.merge)
    reports = consolidate_entities(args.kinds or None, mode, report_path=args.report)
    return 0 if all(report.success for report in reports) else 1


__all__ = ["consolidate_entities", "main"]
