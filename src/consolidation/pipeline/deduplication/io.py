"""Input/output helpers for consolidation reports."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, Sequence, TextIO

from consolidation.entities import RunReport
from consolidation.utils.helpers import ensure_directory


def _atomic_write(destination: str | Path, writer, *, encoding: str = "utf-8") -> Path:
    """Write using a temporary file before atomically replacing the destination."""

    path = Path(str(destination)).expanduser()
    ensure_directory(path.parent)

    tmp_path: Path | None = None
    tmp_handle = NamedTemporaryFile(
        mode="w",
        encoding=encoding,
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        tmp_path = Path(tmp_handle.name)
        try:
            writer(tmp_handle)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        finally:
            tmp_handle.close()
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except FileNotFoundError:  # pragma: no cover - race during cleanup
                pass
        raise

    return path


def generate_run_metadata(reports: Sequence[RunReport], config_used: Dict[str, Any]) -> Dict[str, Any]:
    """Create the JSON document describing one or more consolidation runs."""

    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "config": config_used,
        "summary": {
            report.kind.value: {
                "mode": report.mode.value,
                "groups_found": report.groups_found,
                "merged_count": report.merged_count,
                "deleted_count": report.deleted_count,
                "errors": len(report.errors),
            }
            for report in reports
        },
        "reports": [report.model_dump(mode="json") for report in reports],
    }


def write_run_reports(
    reports: Sequence[RunReport],
    destination: str | Path,
    *,
    config_used: Dict[str, Any] | None = None,
) -> Path:
    """Persist run reports as a single JSON document."""

    payload = generate_run_metadata(reports, config_used or {})

    def _writer(handle: TextIO) -> None:
        handle.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")

    return _atomic_write(destination, _writer)


def load_run_reports(path: str | Path) -> list[RunReport]:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return [RunReport.model_validate(item) for item in payload.get("reports", [])]


def branch_cleanup_payload(report: RunReport | None = None, *, error: Exception | None = None) -> Dict[str, Any]:
    """Summary returned to callers of the branch-cleanup operation.

    ``duplicatesFound`` counts records that would be (or were) eliminated, and
    ``consolidationMap`` maps each eliminated id to its surviving id. Keys are
    strings so the payload survives a JSON round trip unchanged.
    """

    if report is None:
        return {
            "success": False,
            "duplicatesFound": 0,
            "duplicatesDeleted": 0,
            "consolidationMap": {},
            "error": str(error) if error is not None else "branch cleanup did not run",
        }

    if report.consolidation_map:
        mapping = report.consolidation_map
    else:
        mapping = {
            loser_id: cluster.canonical_id for cluster in report.clusters for loser_id in cluster.loser_ids
        }
    payload: Dict[str, Any] = {
        "success": report.success and error is None,
        "duplicatesFound": report.planned_deletions,
        "duplicatesDeleted": report.deleted_count,
        "consolidationMap": {str(loser): survivor for loser, survivor in sorted(mapping.items())},
    }
    if error is not None:
        payload["error"] = str(error)
    elif report.errors:
        payload["error"] = "; ".join(item.error for item in report.errors)
    return payload


__all__ = [
    "generate_run_metadata",
    "write_run_reports",
    "load_run_reports",
    "branch_cleanup_payload",
]
