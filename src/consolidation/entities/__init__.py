"""Domain entities for the consolidation engine."""

from .core import (
    ActionKind,
    BranchCandidate,
    ChildRow,
    ChildSnapshot,
    ClusterError,
    ClusterReport,
    DuplicateGroup,
    EntityKind,
    GroupMember,
    JobCandidate,
    LinkEvidence,
    MergeAction,
    MergePlan,
    NearMiss,
    RunMode,
    RunReport,
    SalesPersonCandidate,
)

__all__ = [
    "ActionKind",
    "BranchCandidate",
    "ChildRow",
    "ChildSnapshot",
    "ClusterError",
    "ClusterReport",
    "DuplicateGroup",
    "EntityKind",
    "GroupMember",
    "JobCandidate",
    "LinkEvidence",
    "MergeAction",
    "MergePlan",
    "NearMiss",
    "RunMode",
    "RunReport",
    "SalesPersonCandidate",
]
