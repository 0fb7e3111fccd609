"""Branch lookup keyed on the normalized branch name."""

from __future__ import annotations

from typing import Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from consolidation.store.models import Branch
from consolidation.utils.logging import get_logger
from consolidation.utils.normalization import normalize_branch_name


_LOGGER = get_logger(module=__name__)


def find_branch(session: Session, name: str | None) -> Branch | None:
    """Return the oldest branch whose name matches ``name`` case-insensitively."""

    normalized = normalize_branch_name(name)
    if not normalized:
        return None
    stmt = (
        select(Branch)
        .where(func.lower(func.trim(Branch.name)) == normalized.lower())
        .order_by(Branch.id)
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


def find_or_create_branch(session: Session, name: str | None) -> Tuple[Branch | None, bool]:
    """Return ``(branch, created)``; new branches are stored under the normalized name.

    The caller owns the transaction; the new row is flushed so its id is
    available immediately.
    """

    normalized = normalize_branch_name(name)
    if not normalized:
        return None, False
    existing = find_branch(session, normalized)
    if existing is not None:
        return existing, False
    branch = Branch(name=normalized)
    session.add(branch)
    session.flush()
    _LOGGER.info("Created branch", branch_id=branch.id, name=normalized)
    return branch, True


__all__ = ["find_branch", "find_or_create_branch"]
