"""Pure merge planning: turn a duplicate group into an ordered action list.

Planning never touches the database. The resulting :class:`MergePlan` is what
dry runs report and what :class:`MergeExecutor` replays inside a transaction.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from consolidation.entities import ActionKind, ChildSnapshot, EntityKind, MergeAction, MergePlan
from consolidation.errors import PlanningError


def add_hours(current: Decimal | None, extra: Decimal | None) -> Decimal | None:
    """Sum two optional hour values; the result is ``None`` only if both are."""

    if current is None and extra is None:
        return None
    return (current or Decimal("0")) + (extra or Decimal("0"))


def plan_merge(
    kind: EntityKind,
    canonical_id: int,
    loser_ids: Iterable[int],
    children: ChildSnapshot,
    *,
    wholesale: Sequence[str] = (),
) -> MergePlan:
    """Plan how every loser's children move onto ``canonical_id``.

    Per loser, in ascending id order:

    1. ``reassign`` every wholesale relation that has rows,
    2. ``reparent`` each keyed row whose key is free under the canonical
       record, or ``fold`` it into the row already holding that key,
    3. ``delete`` the loser itself.

    A key freed by reparenting one loser's row counts as occupied for every
    later loser, so a collision between two losers folds into the row that was
    moved first.
    """

    losers = sorted(set(loser_ids))
    if not losers:
        raise PlanningError(f"{kind.value} group around {canonical_id} has no records to merge")
    if canonical_id in losers:
        raise PlanningError(f"{kind.value} {canonical_id} cannot be both canonical and merged")

    occupied: Dict[Tuple[str, int], Decimal | None] = {
        (row.relation, row.key): row.hours for row in children.rows_for(canonical_id)
    }
    actions: List[MergeAction] = []
    for loser_id in losers:
        counts = children.dependent_counts(loser_id)
        for relation in wholesale:
            count = counts.get(relation, 0)
            if count:
                actions.append(
                    MergeAction(
                        kind=ActionKind.REASSIGN,
                        relation=relation,
                        source_id=loser_id,
                        target_id=canonical_id,
                        expected_rows=count,
                    )
                )

        seen: Set[Tuple[str, int]] = set()
        for row in sorted(children.rows_for(loser_id), key=lambda item: (item.relation, item.key)):
            slot = (row.relation, row.key)
            if slot in seen:
                continue
            seen.add(slot)
            if slot in occupied:
                actions.append(
                    MergeAction(
                        kind=ActionKind.FOLD,
                        relation=row.relation,
                        source_id=loser_id,
                        target_id=canonical_id,
                        key=row.key,
                        hours=row.hours,
                    )
                )
                occupied[slot] = add_hours(occupied[slot], row.hours)
            else:
                actions.append(
                    MergeAction(
                        kind=ActionKind.REPARENT,
                        relation=row.relation,
                        source_id=loser_id,
                        target_id=canonical_id,
                        key=row.key,
                        hours=row.hours,
                    )
                )
                occupied[slot] = row.hours

        actions.append(
            MergeAction(
                kind=ActionKind.DELETE,
                relation=kind.value,
                source_id=loser_id,
                target_id=canonical_id,
            )
        )

    try:
        return MergePlan(kind=kind, canonical_id=canonical_id, loser_ids=losers, actions=actions)
    except ValueError as exc:
        raise PlanningError(str(exc)) from exc


__all__ = ["add_hours", "plan_merge"]
