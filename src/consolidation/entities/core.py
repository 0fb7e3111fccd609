"""Core domain entities used throughout the consolidation engine."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EntityKind(str, Enum):
    """Entity types the engine knows how to consolidate."""

    JOB = "job"
    BRANCH = "branch"
    SALESPERSON = "salesperson"


class RunMode(str, Enum):
    """Report-only or mutating execution."""

    DRY_RUN = "dry-run"
    APPLY = "apply"


class ActionKind(str, Enum):
    """Kinds of row operations a merge plan can contain."""

    REASSIGN = "reassign"
    REPARENT = "reparent"
    FOLD = "fold"
    DELETE = "delete"


class JobCandidate(BaseModel):
    """Snapshot of a job row plus the child counts used for survivor choice."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    branch_id: int | None = None
    closing_date: date | None = None
    performance_status: str | None = None
    shift_count: int = Field(default=0, ge=0)
    special_shift_count: int = Field(default=0, ge=0)


class BranchCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    created_at: datetime | None = None


class SalesPersonCandidate(BaseModel):
    """Snapshot of an active salesperson and the signals that protect it."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    telegram_id: str | None = None
    is_active: bool = True
    warning_count: int = 0
    active_estimate_count: int = Field(default=0, ge=0)
    branch_ids: Tuple[int, ...] = Field(default_factory=tuple)

    @property
    def has_telegram(self) -> bool:
        return bool(self.telegram_id and self.telegram_id.strip())


class ChildRow(BaseModel):
    """A child row identified by its relation, parent and natural key."""

    model_config = ConfigDict(frozen=True)

    relation: str
    parent_id: int
    key: int
    hours: Decimal | None = None


class ChildSnapshot(BaseModel):
    """Children of every member of a duplicate group, captured before planning.

    ``keyed`` holds rows that carry a natural key under their parent;
    ``dependents`` holds per-parent row counts of wholesale foreign keys.
    """

    keyed: Dict[int, List[ChildRow]] = Field(default_factory=dict)
    dependents: Dict[int, Dict[str, int]] = Field(default_factory=dict)

    def rows_for(self, parent_id: int) -> List[ChildRow]:
        return list(self.keyed.get(parent_id, []))

    def dependent_counts(self, parent_id: int) -> Dict[str, int]:
        return dict(self.dependents.get(parent_id, {}))


class MergeAction(BaseModel):
    """One planned row operation; plans are executed in list order."""

    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    relation: str
    source_id: int
    target_id: int
    key: int | None = None
    hours: Decimal | None = None
    expected_rows: int | None = None

    def describe(self) -> str:
        if self.kind is ActionKind.DELETE:
            return f"delete {self.relation} {self.source_id} (merged into {self.target_id})"
        if self.kind is ActionKind.REASSIGN:
            return (
                f"reassign {self.expected_rows} {self.relation} row(s) "
                f"from {self.source_id} to {self.target_id}"
            )
        if self.kind is ActionKind.REPARENT:
            hours = f" ({self.hours}h)" if self.hours is not None else ""
            return f"move {self.relation} key={self.key} from {self.source_id} to {self.target_id}{hours}"
        hours = f" adding {self.hours}h" if self.hours is not None else ""
        return f"fold {self.relation} key={self.key} of {self.source_id} into {self.target_id}{hours}"


class MergePlan(BaseModel):
    """Ordered actions that consolidate one duplicate group."""

    kind: EntityKind
    canonical_id: int
    loser_ids: List[int] = Field(..., min_length=1)
    actions: List[MergeAction] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_plan(self) -> "MergePlan":
        if self.canonical_id in self.loser_ids:
            raise ValueError("the canonical record cannot be merged into itself")
        deleted = [action.source_id for action in self.actions if action.kind is ActionKind.DELETE]
        if self.canonical_id in deleted:
            raise ValueError("a merge plan must never delete the canonical record")
        return self


class GroupMember(BaseModel):
    id: int
    name: str
    normalized_name: str
    details: Dict[str, Any] = Field(default_factory=dict)


class LinkEvidence(BaseModel):
    """Similarity evidence for one edge that pulled a member into a group."""

    source_id: int
    target_id: int
    score: float
    driver: str


class DuplicateGroup(BaseModel):
    """A cluster of 2+ records believed to be the same entity."""

    kind: EntityKind
    scope_key: Any = None
    members: List[GroupMember] = Field(..., min_length=2)
    evidence: List[LinkEvidence] = Field(default_factory=list)

    @property
    def member_ids(self) -> List[int]:
        return [member.id for member in self.members]


class NearMiss(BaseModel):
    """A pair that scored just below the grouping threshold."""

    source_id: int
    source_name: str
    target_id: int
    target_name: str
    score: float


class ClusterReport(BaseModel):
    """What happened (or would happen) to one duplicate group."""

    group: DuplicateGroup
    canonical_id: int
    loser_ids: List[int]
    actions: List[MergeAction] = Field(default_factory=list)
    applied: bool = False
    error: str | None = None
    audit: List[str] = Field(default_factory=list)


class ClusterError(BaseModel):
    kind: EntityKind
    canonical_id: int
    member_ids: List[int]
    error: str


class RunReport(BaseModel):
    """Structured, returned record of a consolidation run."""

    run_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    kind: EntityKind
    mode: RunMode
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    passes: int = 0
    candidates: int = 0
    groups_found: int = 0
    merged_count: int = 0
    deleted_count: int = 0
    clusters: List[ClusterReport] = Field(default_factory=list)
    errors: List[ClusterError] = Field(default_factory=list)
    consolidation_map: Dict[int, int] = Field(default_factory=dict)
    near_misses: List[NearMiss] = Field(default_factory=list)
    stats: Dict[str, Any] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def planned_deletions(self) -> int:
        return sum(len(cluster.loser_ids) for cluster in self.clusters)


__all__ = [
    "EntityKind",
    "RunMode",
    "ActionKind",
    "JobCandidate",
    "BranchCandidate",
    "SalesPersonCandidate",
    "ChildRow",
    "ChildSnapshot",
    "MergeAction",
    "MergePlan",
    "GroupMember",
    "LinkEvidence",
    "DuplicateGroup",
    "NearMiss",
    "ClusterReport",
    "ClusterError",
    "RunReport",
]
