"""Deduplication policy models for the consolidated entity types."""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field, model_validator


class ClusterStrategy(str, Enum):
    """How candidates are attached to a duplicate group."""

    SEED_ONLY = "seed-only"
    TRANSITIVE_EXPANSION = "transitive-expansion"
    EXACT = "exact"


class EntityDedupPolicy(BaseModel):
    """Settings shared by every entity-specific deduplication policy."""

    enabled: bool = Field(default=True, description="Whether the entity takes part in `all` runs.")
    strategy: ClusterStrategy
    threshold: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Minimum similarity for two records to be grouped, on the scorer's own scale.",
    )
    sample_group_count: int = Field(
        default=10,
        ge=0,
        description="Number of duplicate groups logged in detail for auditing.",
    )
    near_miss_margin: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Pairs scoring this close below the threshold are reported for review.",
    )
    max_passes: int = Field(
        default=5,
        ge=1,
        description="Upper bound on repeated apply passes until no duplicate groups remain.",
    )


class JobDedupPolicy(EntityDedupPolicy):
    """Fuzzy job-name matching within a branch."""

    strategy: ClusterStrategy = Field(default=ClusterStrategy.SEED_ONLY)
    threshold: float = Field(default=85.0, ge=0.0, le=100.0)
    near_miss_margin: float = Field(default=5.0, ge=0.0, le=100.0)
    suffix_tokens: List[str] = Field(
        default_factory=lambda: ["ARL", "REVISED", "SM", "CLI", "PM", "SD", "LAK", "WA", "CA"],
        description="Trailing `- TOKEN` qualifiers stripped before comparing job names.",
    )


class BranchDedupPolicy(EntityDedupPolicy):
    """Branches only merge when their normalized names are identical."""

    strategy: ClusterStrategy = Field(default=ClusterStrategy.EXACT)
    threshold: float = Field(default=100.0, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def _require_exact(self) -> "BranchDedupPolicy":
        if self.strategy is not ClusterStrategy.EXACT:
            raise ValueError("branch deduplication only supports the exact strategy")
        return self


class SalesPersonDedupPolicy(EntityDedupPolicy):
    """Person-name matching among active salespersons."""

    strategy: ClusterStrategy = Field(default=ClusterStrategy.TRANSITIVE_EXPANSION)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    near_miss_margin: float = Field(default=0.1, ge=0.0, le=1.0)
    active_estimate_statuses: List[str] = Field(
        default_factory=lambda: ["In Progress", "Released"],
        description="Estimate statuses counted when ranking salesperson survivors.",
    )


class RegistrationPolicy(BaseModel):
    """Matching rules used when registering salespersons from synced estimates."""

    salesperson_match_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum person-name score for reusing an existing active salesperson.",
    )
    auto_assign_branch: bool = Field(
        default=True,
        description="Link the branch to a salesperson that currently has no branch links.",
    )


class HousekeepingPolicy(BaseModel):
    """Rules for deactivating salespersons that carry no data."""

    protect_with_telegram: bool = Field(default=True)
    protect_with_warnings: bool = Field(default=True)
    protect_with_branches: bool = Field(default=True)


__all__ = [
    "ClusterStrategy",
    "EntityDedupPolicy",
    "JobDedupPolicy",
    "BranchDedupPolicy",
    "SalesPersonDedupPolicy",
    "RegistrationPolicy",
    "HousekeepingPolicy",
]
