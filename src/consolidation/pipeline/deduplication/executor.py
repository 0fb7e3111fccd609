"""Replay merge plans against the relational store."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Sequence, Type

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from consolidation.entities import ActionKind, MergeAction, MergePlan
from consolidation.errors import MergeExecutionError
from consolidation.pipeline.deduplication.planner import add_hours
from consolidation.pipeline.deduplication.relations import KeyedRelation, WholesaleRelation
from consolidation.store.models import Base
from consolidation.utils.logging import get_logger


@dataclass
class ClusterOutcome:
    """Result of applying one plan: audit trail and counters."""

    canonical_id: int
    deleted_ids: List[int] = field(default_factory=list)
    audit: List[str] = field(default_factory=list)
    rows_reassigned: int = 0
    rows_reparented: int = 0
    rows_folded: int = 0


class MergeExecutor:
    """Apply :class:`MergePlan` actions through an open session.

    The executor never commits; callers wrap :meth:`apply` in
    :func:`consolidation.store.transaction` so a failing action rolls back the
    whole cluster. Every action re-reads the rows it touches, and a plan that
    no longer matches the stored data raises :class:`MergeExecutionError`.
    """

    def __init__(
        self,
        parent_model: Type[Base],
        *,
        keyed: Sequence[KeyedRelation] = (),
        wholesale: Sequence[WholesaleRelation] = (),
    ) -> None:
        self.parent_model = parent_model
        self.keyed: Dict[str, KeyedRelation] = {relation.name: relation for relation in keyed}
        self.wholesale: Dict[str, WholesaleRelation] = {relation.name: relation for relation in wholesale}
        self._log = get_logger(module=__name__, parent=parent_model.__tablename__)

    def apply(self, session: Session, plan: MergePlan) -> ClusterOutcome:
        outcome = ClusterOutcome(canonical_id=plan.canonical_id)
        if session.get(self.parent_model, plan.canonical_id) is None:
            raise MergeExecutionError(
                f"canonical {plan.kind.value} {plan.canonical_id} no longer exists",
                canonical_id=plan.canonical_id,
            )
        for action in plan.actions:
            if action.kind is ActionKind.REASSIGN:
                self._reassign(session, action, outcome)
            elif action.kind is ActionKind.REPARENT:
                self._reparent(session, action, outcome)
            elif action.kind is ActionKind.FOLD:
                self._fold(session, action, outcome)
            else:
                self._delete_parent(session, action, outcome)
        return outcome

    def _audit(self, outcome: ClusterOutcome, line: str, action: MergeAction, **fields) -> None:
        outcome.audit.append(line)
        self._log.info(
            line,
            action=action.kind.value,
            relation=action.relation,
            source_id=action.source_id,
            target_id=action.target_id,
            **fields,
        )

    def _keyed(self, action: MergeAction) -> KeyedRelation:
        relation = self.keyed.get(action.relation)
        if relation is None or action.key is None:
            raise MergeExecutionError(
                f"unknown keyed relation {action.relation!r}",
                canonical_id=action.target_id,
            )
        return relation

    def _hours_of(self, session: Session, relation: KeyedRelation, parent_id: int, key: int) -> List[Decimal | None]:
        column = relation.hours if relation.hours is not None else relation.key
        rows = session.execute(
            select(column).where(relation.parent == parent_id, relation.key == key)
        ).scalars().all()
        if relation.hours is None:
            return [None for _ in rows]
        return list(rows)

    def _reassign(self, session: Session, action: MergeAction, outcome: ClusterOutcome) -> None:
        relation = self.wholesale.get(action.relation)
        if relation is None:
            raise MergeExecutionError(
                f"unknown dependent relation {action.relation!r}",
                canonical_id=action.target_id,
            )
        result = session.execute(
            update(relation.model)
            .where(relation.foreign_key == action.source_id)
            .values({relation.column: action.target_id})
        )
        moved = result.rowcount or 0
        outcome.rows_reassigned += moved
        self._audit(
            outcome,
            f"Reassigned {moved} {relation.name} row(s) from {action.source_id} to {action.target_id}",
            action,
            rows=moved,
            expected_rows=action.expected_rows,
        )

    def _reparent(self, session: Session, action: MergeAction, outcome: ClusterOutcome) -> None:
        relation = self._keyed(action)
        if self._hours_of(session, relation, action.target_id, action.key):
            raise MergeExecutionError(
                f"{relation.name} key {action.key} already exists under {action.target_id}; plan is stale",
                canonical_id=action.target_id,
            )
        result = session.execute(
            update(relation.model)
            .where(relation.parent == action.source_id, relation.key == action.key)
            .values({relation.parent_column: action.target_id})
        )
        moved = result.rowcount or 0
        if moved == 0:
            raise MergeExecutionError(
                f"{relation.name} key {action.key} of {action.source_id} disappeared before reparenting",
                canonical_id=action.target_id,
            )
        outcome.rows_reparented += moved
        self._audit(
            outcome,
            f"Moved {relation.name} key={action.key} from {action.source_id} to {action.target_id}",
            action,
            key=action.key,
            hours=str(action.hours) if action.hours is not None else None,
        )

    def _fold(self, session: Session, action: MergeAction, outcome: ClusterOutcome) -> None:
        relation = self._keyed(action)
        target_hours = self._hours_of(session, relation, action.target_id, action.key)
        source_hours = self._hours_of(session, relation, action.source_id, action.key)
        if not target_hours or not source_hours:
            raise MergeExecutionError(
                f"{relation.name} key {action.key} missing while folding "
                f"{action.source_id} into {action.target_id}",
                canonical_id=action.target_id,
            )

        before = target_hours[0]
        after = before
        if relation.hours is not None:
            for extra in source_hours:
                after = add_hours(after, extra)
            session.execute(
                update(relation.model)
                .where(relation.parent == action.target_id, relation.key == action.key)
                .values({relation.hours_column: after})
            )
        session.execute(
            delete(relation.model).where(relation.parent == action.source_id, relation.key == action.key)
        )
        outcome.rows_folded += len(source_hours)
        if relation.hours is None:
            line = (
                f"Dropped {relation.name} key={action.key} of {action.source_id}; "
                f"{action.target_id} already holds it"
            )
        else:
            line = (
                f"Folded {relation.name} key={action.key} of {action.source_id} into "
                f"{action.target_id}: {before} -> {after} hours"
            )
        self._audit(
            outcome,
            line,
            action,
            key=action.key,
            hours_before=str(before) if before is not None else None,
            hours_after=str(after) if after is not None else None,
        )

    def _remaining_children(self, session: Session, parent_id: int) -> Dict[str, int]:
        remaining: Dict[str, int] = {}
        for relation in self.keyed.values():
            count = session.execute(
                select(func.count()).select_from(relation.model).where(relation.parent == parent_id)
            ).scalar_one()
            if count:
                remaining[relation.name] = count
        for relation in self.wholesale.values():
            count = session.execute(
                select(func.count()).select_from(relation.model).where(relation.foreign_key == parent_id)
            ).scalar_one()
            if count:
                remaining[relation.name] = count
        return remaining

    def _delete_parent(self, session: Session, action: MergeAction, outcome: ClusterOutcome) -> None:
        remaining = self._remaining_children(session, action.source_id)
        if remaining:
            raise MergeExecutionError(
                f"{action.relation} {action.source_id} still owns rows {remaining}; refusing to delete",
                canonical_id=action.target_id,
            )
        result = session.execute(delete(self.parent_model).where(self.parent_model.id == action.source_id))
        if (result.rowcount or 0) != 1:
            raise MergeExecutionError(
                f"{action.relation} {action.source_id} was not found for deletion",
                canonical_id=action.target_id,
            )
        outcome.deleted_ids.append(action.source_id)
        self._audit(
            outcome,
            f"Deleted {action.relation} {action.source_id} (merged into {action.target_id})",
            action,
        )


def describe_relations(
    keyed: Sequence[KeyedRelation], wholesale: Sequence[WholesaleRelation]
) -> Mapping[str, str]:
    """Human readable summary of what a profile migrates, used in reports."""

    summary = {relation.name: f"{relation.model.__tablename__}.{relation.column}" for relation in wholesale}
    for relation in keyed:
        summary[relation.name] = (
            f"{relation.model.__tablename__}.{relation.parent_column} keyed by {relation.key_column}"
        )
    return summary


__all__ = ["ClusterOutcome", "MergeExecutor", "describe_relations"]
