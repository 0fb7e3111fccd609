"""Branch deduplication: identical normalized names only."""

from __future__ import annotations

from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from consolidation.config.policies import BranchDedupPolicy
from consolidation.entities import BranchCandidate, EntityKind
from consolidation.pipeline.deduplication.canonical import branch_rank
from consolidation.pipeline.deduplication.relations import KeyedRelation, WholesaleRelation
from consolidation.pipeline.deduplication.similarity import ExactNameScorer, NameScorer
from consolidation.store.models import Branch, Employee, Estimate, Job, SalesPerson, SalesPersonBranch
from consolidation.utils.normalization import normalize_branch_name

from .base import EntityProfile


class BranchProfile(EntityProfile[BranchCandidate, BranchDedupPolicy]):
    """Branch names carry organizational meaning, so near matches never merge."""

    kind = EntityKind.BRANCH
    parent_model = Branch
    keyed_relations = (
        KeyedRelation("sales_person_branch", SalesPersonBranch, "branch_id", "sales_person_id"),
    )
    wholesale_relations = (
        WholesaleRelation("employee", Employee, "branch_id"),
        WholesaleRelation("job", Job, "branch_id"),
        WholesaleRelation("estimate", Estimate, "branch_id"),
        WholesaleRelation("sales_person", SalesPerson, "branch_id"),
    )

    def load_candidates(self, session: Session) -> List[BranchCandidate]:
        branches = session.execute(select(Branch).order_by(Branch.id)).scalars().all()
        return [
            BranchCandidate(id=branch.id, name=branch.name, created_at=branch.created_at)
            for branch in branches
        ]

    def normalize(self, name: str) -> str:
        return normalize_branch_name(name)

    def scorer(self) -> NameScorer:
        return ExactNameScorer()

    def rank(self, candidate: BranchCandidate) -> Tuple:
        return branch_rank(candidate)


__all__ = ["BranchProfile"]
