"""Tests for the loguru sinks and record formatting."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from loguru import logger

from consolidation.config.settings import Settings
from consolidation.utils.logging import configure_logging, format_record, get_logger


@pytest.fixture()
def settings(tmp_path: Path):
    cfg = Settings(
        environment="testing",
        paths={"logs_dir": tmp_path / "logs", "reports_dir": tmp_path / "reports"},
    )
    yield cfg
    logger.remove()
    logger.add(sys.stderr)


def test_format_record_appends_bound_fields() -> None:
    record = {"extra": {"run_id": "r1", "step": "dedup:job", "module": "x", "action": "fold", "source_id": 10}}

    template = format_record(record)

    assert "{extra[fields]}" in template
    assert record["extra"]["fields"] == "action=fold source_id=10"


def test_format_record_without_fields() -> None:
    record = {"extra": {"run_id": "-", "step": "-"}}

    template = format_record(record)

    assert "{extra[fields]}" not in template
    assert template.endswith("{message}\n{exception}")


def test_merge_actions_reach_the_audit_file(settings: Settings) -> None:
    configure_logging(settings, enqueue=False)
    log = get_logger(module="tests")

    log.info(
        "Folded shift key=(7,) of 10 into 22: 4 -> 10 hours",
        action="fold",
        relation="shift",
        source_id=10,
        target_id=22,
    )
    log.info("Consolidation run started", kind="job", mode="apply")
    logger.remove()

    audit_lines = settings.audit_log_file.read_text(encoding="utf-8").splitlines()
    assert len(audit_lines) == 1
    entry = json.loads(audit_lines[0])["record"]
    assert entry["extra"]["action"] == "fold"
    assert entry["extra"]["target_id"] == 22
    assert entry["message"].startswith("Folded shift")

    text = settings.log_file.read_text(encoding="utf-8")
    assert "action=fold relation=shift source_id=10 target_id=22" in text
    assert "kind=job mode=apply" in text
