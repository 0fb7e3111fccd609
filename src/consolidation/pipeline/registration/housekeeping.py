"""Deactivate salespersons that own no estimates and carry nothing worth keeping."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from consolidation.config.policies import HousekeepingPolicy
from consolidation.pipeline.deduplication.profiles import load_branch_links
from consolidation.store.models import Estimate, SalesPerson
from consolidation.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)


@dataclass
class HousekeepingResult:
    dry_run: bool
    candidates: int = 0
    deactivated: List[int] = field(default_factory=list)
    protected: Dict[int, List[str]] = field(default_factory=dict)


def _protection_reasons(person: SalesPerson, branch_count: int, policy: HousekeepingPolicy) -> List[str]:
    reasons: List[str] = []
    if policy.protect_with_telegram and person.telegram_id and person.telegram_id.strip():
        reasons.append("telegram")
    if policy.protect_with_warnings and (person.warning_count or 0) > 0:
        reasons.append("warnings")
    if policy.protect_with_branches and branch_count > 0:
        reasons.append("branches")
    return reasons


def deactivate_idle_salespersons(
    session: Session,
    policy: HousekeepingPolicy | None = None,
    *,
    dry_run: bool = False,
) -> HousekeepingResult:
    """Mark active salespersons without estimates as inactive.

    Records with a telegram id, warnings or branch links are kept active and
    reported as protected. With ``dry_run`` nothing is written.
    """

    policy = policy or HousekeepingPolicy()
    with_estimates = select(Estimate.sales_person_id).where(Estimate.sales_person_id.is_not(None))
    idle = (
        session.execute(
            select(SalesPerson)
            .where(SalesPerson.is_active.is_(True), SalesPerson.id.not_in(with_estimates))
            .order_by(SalesPerson.id)
        )
        .scalars()
        .all()
    )
    links = load_branch_links(session, [person.id for person in idle])

    result = HousekeepingResult(dry_run=dry_run, candidates=len(idle))
    for person in idle:
        reasons = _protection_reasons(person, len(links.get(person.id, ())), policy)
        if reasons:
            result.protected[person.id] = reasons
            _LOGGER.info("Kept idle salesperson active", salesperson_id=person.id, name=person.name, reasons=reasons)
        else:
            result.deactivated.append(person.id)

    if result.deactivated and not dry_run:
        session.execute(
            update(SalesPerson).where(SalesPerson.id.in_(result.deactivated)).values(is_active=False)
        )
    _LOGGER.info(
        "Idle salesperson sweep finished",
        dry_run=dry_run,
        candidates=result.candidates,
        deactivated=len(result.deactivated),
        protected=len(result.protected),
    )
    return result


__all__ = ["HousekeepingResult", "deactivate_idle_salespersons"]
