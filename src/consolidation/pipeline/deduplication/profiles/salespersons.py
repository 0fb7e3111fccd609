"""SalesPerson deduplication among active records."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Set, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from consolidation.config.policies import SalesPersonDedupPolicy
from consolidation.entities import EntityKind, SalesPersonCandidate
from consolidation.pipeline.deduplication.canonical import salesperson_rank
from consolidation.pipeline.deduplication.relations import KeyedRelation, WholesaleRelation
from consolidation.pipeline.deduplication.similarity import NameScorer, PersonNameScorer
from consolidation.store.models import Estimate, SalesPerson, SalesPersonBranch
from consolidation.utils.normalization import normalize_person_name

from .base import EntityProfile


def load_branch_links(session: Session, person_ids: List[int] | None = None) -> Dict[int, Set[int]]:
    """Branch ids linked to each salesperson through the join table."""

    stmt = select(SalesPersonBranch.sales_person_id, SalesPersonBranch.branch_id)
    if person_ids is not None:
        stmt = stmt.where(SalesPersonBranch.sales_person_id.in_(person_ids))
    links: Dict[int, Set[int]] = defaultdict(set)
    for person_id, branch_id in session.execute(stmt).all():
        links[person_id].add(branch_id)
    return links


class SalesPersonProfile(EntityProfile[SalesPersonCandidate, SalesPersonDedupPolicy]):
    """Inactive salespersons are never candidates, so they are never revived or merged."""

    kind = EntityKind.SALESPERSON
    parent_model = SalesPerson
    keyed_relations = (
        KeyedRelation("sales_person_branch", SalesPersonBranch, "sales_person_id", "branch_id"),
    )
    wholesale_relations = (WholesaleRelation("estimate", Estimate, "sales_person_id"),)

    def load_candidates(self, session: Session) -> List[SalesPersonCandidate]:
        people = (
            session.execute(select(SalesPerson).where(SalesPerson.is_active.is_(True)).order_by(SalesPerson.id))
            .scalars()
            .all()
        )
        statuses = list(self.policy.active_estimate_statuses)
        active_counts: Dict[int, int] = {}
        if statuses:
            active_counts = dict(
                session.execute(
                    select(Estimate.sales_person_id, func.count())
                    .where(Estimate.status.in_(statuses), Estimate.sales_person_id.is_not(None))
                    .group_by(Estimate.sales_person_id)
                ).all()
            )
        links = load_branch_links(session)
        return [
            SalesPersonCandidate(
                id=person.id,
                name=person.name,
                telegram_id=person.telegram_id,
                is_active=person.is_active,
                warning_count=person.warning_count or 0,
                active_estimate_count=active_counts.get(person.id, 0),
                branch_ids=tuple(sorted(links.get(person.id, ()))),
            )
            for person in people
        ]

    def normalize(self, name: str) -> str:
        return normalize_person_name(name)

    def scorer(self) -> NameScorer:
        return PersonNameScorer()

    def rank(self, candidate: SalesPersonCandidate) -> Tuple:
        return salesperson_rank(candidate)


__all__ = ["SalesPersonProfile", "load_branch_links"]
