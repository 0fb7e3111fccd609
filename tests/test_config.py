"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from consolidation.config.policies import ClusterStrategy, Policies, load_policies
from consolidation.config.settings import Settings


@pytest.fixture
def minimal_policy_dict() -> dict:
    return {
        "policy_version": "test-version",
        "jobs": {"strategy": "seed-only", "threshold": 85},
        "branches": {"strategy": "exact", "threshold": 100},
        "salespersons": {"strategy": "transitive-expansion", "threshold": 0.7},
    }


def write_config(directory: Path, name: str, payload: dict) -> None:
    (directory / name).write_text(yaml.safe_dump(payload), encoding="utf-8")


def test_policy_defaults() -> None:
    policies = Policies()
    assert policies.jobs.strategy is ClusterStrategy.SEED_ONLY
    assert policies.jobs.threshold == 85.0
    assert "REVISED" in policies.jobs.suffix_tokens
    assert policies.branches.strategy is ClusterStrategy.EXACT
    assert policies.salespersons.strategy is ClusterStrategy.TRANSITIVE_EXPANSION
    assert policies.salespersons.threshold == 0.7
    assert policies.registration.auto_assign_branch is True


def test_load_policies_from_dict(minimal_policy_dict: dict) -> None:
    policies = load_policies(minimal_policy_dict)
    assert isinstance(policies, Policies)
    assert policies.policy_version == "test-version"
    assert policies.jobs.max_passes == 5


def test_load_policies_from_yaml(tmp_path: Path, minimal_policy_dict: dict) -> None:
    write_config(tmp_path, "policies.yaml", minimal_policy_dict)
    assert load_policies(tmp_path / "policies.yaml").jobs.threshold == 85.0


def test_load_policies_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_policies(tmp_path / "missing.yaml")


def test_policy_env_override(monkeypatch: pytest.MonkeyPatch, minimal_policy_dict: dict) -> None:
    monkeypatch.setenv("CONSOLIDATION_POLICY__JOBS__THRESHOLD", "90")
    monkeypatch.setenv("CONSOLIDATION_POLICY__JOBS__STRATEGY", "transitive-expansion")

    policies = load_policies(minimal_policy_dict)

    assert policies.jobs.threshold == 90.0
    assert policies.jobs.strategy is ClusterStrategy.TRANSITIVE_EXPANSION


def test_branch_policy_rejects_fuzzy_strategies() -> None:
    with pytest.raises(ValidationError):
        load_policies({"branches": {"strategy": "seed-only"}})


def test_salesperson_threshold_is_bounded() -> None:
    with pytest.raises(ValidationError):
        load_policies({"salespersons": {"threshold": 70}})


def test_settings_environment_override(tmp_path: Path, minimal_policy_dict: dict) -> None:
    default_yaml = {
        "database": {"url": "sqlite:///default.db"},
        "paths": {"logs_dir": str(tmp_path / "logs"), "reports_dir": str(tmp_path / "reports")},
        "policies": minimal_policy_dict,
    }
    testing_yaml = {
        "database": {"url": "sqlite://"},
        "policies": {"policy_version": "testing", "jobs": {"threshold": 92}},
    }
    write_config(tmp_path, "default.yaml", default_yaml)
    write_config(tmp_path, "testing.yaml", testing_yaml)

    settings = Settings(config_dir=tmp_path, environment="testing")

    assert settings.database.url == "sqlite://"
    assert settings.policies.policy_version == "testing"
    assert settings.policies.jobs.threshold == 92.0
    assert settings.policies.jobs.strategy is ClusterStrategy.SEED_ONLY
    assert (tmp_path / "logs").is_dir()
    assert settings.log_file == tmp_path / "logs" / "consolidation.log"


def test_settings_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, minimal_policy_dict: dict) -> None:
    write_config(
        tmp_path,
        "default.yaml",
        {
            "paths": {"logs_dir": str(tmp_path / "logs"), "reports_dir": str(tmp_path / "reports")},
            "policies": minimal_policy_dict,
        },
    )
    monkeypatch.setenv("CONSOLIDATION_SETTINGS__DATABASE__URL", "sqlite:///override.db")

    settings = Settings(config_dir=tmp_path)

    assert settings.database.url == "sqlite:///override.db"


def test_repository_config_files_load(tmp_path: Path) -> None:
    settings = Settings(
        environment="testing",
        paths={"logs_dir": tmp_path / "logs", "reports_dir": tmp_path / "reports"},
    )
    assert settings.database.url == "sqlite://"
    assert settings.policies.jobs.near_miss_margin == 5.0
