"""Policy configuration primitives for the consolidation engine."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, Field, model_validator

from .deduplication import (
    BranchDedupPolicy,
    ClusterStrategy,
    EntityDedupPolicy,
    HousekeepingPolicy,
    JobDedupPolicy,
    RegistrationPolicy,
    SalesPersonDedupPolicy,
)


class Policies(BaseModel):
    """Root policy container."""

    policy_version: str = Field(default="2025-10-01")
    jobs: JobDedupPolicy = Field(default_factory=JobDedupPolicy)
    branches: BranchDedupPolicy = Field(default_factory=BranchDedupPolicy)
    salespersons: SalesPersonDedupPolicy = Field(default_factory=SalesPersonDedupPolicy)
    registration: RegistrationPolicy = Field(default_factory=RegistrationPolicy)
    housekeeping: HousekeepingPolicy = Field(default_factory=HousekeepingPolicy)

    @model_validator(mode="after")
    def _validate_policy_version(self) -> "Policies":
        if not self.policy_version:
            raise ValueError("policy_version must be provided")
        return self


def _ensure_nested_mapping(
    cursor: MutableMapping[str, Any], part: str, full_path: Sequence[str]
) -> MutableMapping[str, Any]:
    existing = cursor.get(part)
    if existing is None:
        next_cursor: MutableMapping[str, Any] = {}
        cursor[part] = next_cursor
        return next_cursor
    if not isinstance(existing, MutableMapping):
        raise ValueError(
            "Cannot override policy path '"
            f"{'/'.join(full_path)}"
            "' because segment '"
            f"{part}"
            "' resolves to a non-mapping value"
        )
    return existing


def _resolve_env_overrides(raw: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Apply CONSOLIDATION_POLICY__ environment variable overrides.

    Variables are split on double underscores into a lowercased traversal path,
    e.g. ``CONSOLIDATION_POLICY__JOBS__THRESHOLD=90``. Values are JSON-decoded
    when possible and kept as raw strings otherwise.
    """

    prefix = "CONSOLIDATION_POLICY__"
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        parts = [segment.lower() for segment in key[len(prefix) :].split("__") if segment]
        if not parts:
            continue
        cursor: MutableMapping[str, Any] = raw
        for index, part in enumerate(parts[:-1], start=1):
            cursor = _ensure_nested_mapping(cursor, part, parts[: index + 1])
        try:
            parsed = json.loads(value)
        except (TypeError, json.JSONDecodeError):
            parsed = value
        cursor[parts[-1]] = parsed
    return raw


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any]) -> Policies:
    """Load policies from a mapping or YAML file with environment overrides."""

    if isinstance(source, Mapping):
        raw: MutableMapping[str, Any] = dict(source)
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, MutableMapping):
            raise ValueError(
                f"Policy file '{path}' must contain a mapping at the top level"
            )
        raw = dict(loaded)
    hydrated = _resolve_env_overrides(raw)
    return Policies.model_validate(hydrated)


__all__ = [
    "Policies",
    "load_policies",
    "ClusterStrategy",
    "EntityDedupPolicy",
    "JobDedupPolicy",
    "BranchDedupPolicy",
    "SalesPersonDedupPolicy",
    "RegistrationPolicy",
    "HousekeepingPolicy",
]
