"""Deterministic survivor selection for duplicate groups.

Each entity type ranks its members with a sort key; the member with the
smallest key survives. Keys are built only from field values, so selection on
an unchanged group always returns the same record.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Sequence, Tuple, TypeVar

from consolidation.entities import BranchCandidate, JobCandidate, SalesPersonCandidate
from consolidation.errors import PlanningError


T = TypeVar("T")

RankKey = Callable[[T], Tuple]


def job_rank(job: JobCandidate) -> Tuple[int, int]:
    """Most shifts first, then the oldest (lowest) id."""

    return (-job.shift_count, job.id)


def _timestamp(value: datetime | None) -> float:
    if value is None:
        return float("inf")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def branch_rank(branch: BranchCandidate) -> Tuple[bool, float, int]:
    """Earliest creation time first; records without a timestamp sort last."""

    return (branch.created_at is None, _timestamp(branch.created_at), branch.id)


def salesperson_rank(person: SalesPersonCandidate) -> Tuple[bool, int, int, int]:
    return (
        not person.has_telegram,
        -person.active_estimate_count,
        -person.warning_count,
        person.id,
    )


def select_canonical(group: Sequence[T], rank: RankKey) -> T:
    """Return the member of ``group`` with the smallest rank key."""

    if not group:
        raise PlanningError("cannot select a canonical record from an empty group")
    return min(group, key=rank)


__all__ = ["job_rank", "branch_rank", "salesperson_rank", "select_canonical"]
