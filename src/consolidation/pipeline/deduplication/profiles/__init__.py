"""Entity profiles plugged into the generic consolidation engine."""

from __future__ import annotations

from consolidation.config.policies import Policies
from consolidation.entities import EntityKind

from .base import EntityProfile
from .branches import BranchProfile
from .jobs import JobProfile
from .salespersons import SalesPersonProfile, load_branch_links


def build_profile(kind: EntityKind | str, policies: Policies) -> EntityProfile:
    """Instantiate the profile for ``kind`` with its policy section."""

    kind = EntityKind(kind)
    if kind is EntityKind.JOB:
        return JobProfile(policies.jobs)
    if kind is EntityKind.BRANCH:
        return BranchProfile(policies.branches)
    return SalesPersonProfile(policies.salespersons)


__all__ = [
    "EntityProfile",
    "JobProfile",
    "BranchProfile",
    "SalesPersonProfile",
    "build_profile",
    "load_branch_links",
]
