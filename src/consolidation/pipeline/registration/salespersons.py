"""Resolve a salesperson name from synced estimates to a single active record."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from consolidation.config.policies import RegistrationPolicy
from consolidation.pipeline.deduplication.similarity import PersonNameScorer
from consolidation.store.models import SalesPerson, SalesPersonBranch
from consolidation.utils.helpers import normalize_whitespace
from consolidation.utils.logging import get_logger
from consolidation.utils.normalization import normalize_person_name

from .branches import find_or_create_branch


_LOGGER = get_logger(module=__name__)


class MatchKind(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    CREATED = "created"


@dataclass
class RegistrationResult:
    """Outcome of :func:`register_salesperson`."""

    salesperson: SalesPerson | None
    match: MatchKind | None = None
    score: float = 0.0
    branch_id: int | None = None
    branch_linked: bool = False
    branch_created: bool = False

    @property
    def created(self) -> bool:
        return self.match is MatchKind.CREATED

    @property
    def salesperson_id(self) -> int | None:
        return self.salesperson.id if self.salesperson is not None else None


def _best_active_match(
    session: Session, normalized: str, threshold: float
) -> Tuple[SalesPerson | None, MatchKind | None, float]:
    active: List[SalesPerson] = list(
        session.execute(
            select(SalesPerson).where(SalesPerson.is_active.is_(True)).order_by(SalesPerson.id)
        )
        .scalars()
        .all()
    )
    for person in active:
        if normalize_person_name(person.name) == normalized:
            return person, MatchKind.EXACT, 1.0

    scorer = PersonNameScorer()
    best: SalesPerson | None = None
    best_score = 0.0
    for person in active:
        score = scorer.score(normalized, normalize_person_name(person.name))
        if score >= threshold and score > best_score:
            best, best_score = person, score
    if best is None:
        return None, None, best_score
    return best, MatchKind.FUZZY, best_score


def _link_count(session: Session, person_id: int) -> int:
    return session.execute(
        select(func.count())
        .select_from(SalesPersonBranch)
        .where(SalesPersonBranch.sales_person_id == person_id)
    ).scalar_one()


def register_salesperson(
    session: Session,
    name: str | None,
    branch_name: str | None = None,
    *,
    policy: RegistrationPolicy | None = None,
) -> RegistrationResult:
    """Find the active salesperson behind ``name`` or create one.

    Matching considers active records only: an exact normalized-name match
    wins, otherwise the highest person-name score at or above the policy
    threshold (lowest id on ties). Inactive records are never matched and
    never reactivated, so a name that only resembles an inactive record
    produces a new active row. When ``branch_name`` is given, the branch is
    linked only if the salesperson has no branch links yet.
    """

    policy = policy or RegistrationPolicy()
    display_name = normalize_whitespace(name or "")
    normalized = normalize_person_name(display_name)
    if not normalized:
        return RegistrationResult(salesperson=None)

    person, match, score = _best_active_match(session, normalized, policy.salesperson_match_threshold)
    if person is None:
        person = SalesPerson(name=display_name, warning_count=0, is_active=True)
        session.add(person)
        session.flush()
        match, score = MatchKind.CREATED, 0.0
        _LOGGER.info("Created salesperson", salesperson_id=person.id, name=display_name)
    else:
        _LOGGER.debug(
            "Matched existing salesperson",
            salesperson_id=person.id,
            name=person.name,
            requested=display_name,
            match=match.value,
            score=round(score, 4),
        )

    result = RegistrationResult(salesperson=person, match=match, score=score)
    if not branch_name:
        return result

    branch, branch_created = find_or_create_branch(session, branch_name)
    if branch is None:
        return result
    result.branch_id = branch.id
    result.branch_created = branch_created
    if policy.auto_assign_branch and _link_count(session, person.id) == 0:
        session.add(SalesPersonBranch(sales_person_id=person.id, branch_id=branch.id))
        session.flush()
        result.branch_linked = True
        _LOGGER.info("Linked salesperson to branch", salesperson_id=person.id, branch_id=branch.id)
    return result


__all__ = ["MatchKind", "RegistrationResult", "register_salesperson"]
