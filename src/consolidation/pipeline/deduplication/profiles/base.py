"""Shared machinery for entity deduplication profiles.

A profile supplies everything entity-specific the engine needs: how to load
candidates and their children, how to normalize and score names, the scope
that bounds comparisons, the survivor ranking, and the child relations a
merge has to migrate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, Generic, Hashable, List, Sequence, Tuple, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from consolidation.config.policies import ClusterStrategy, EntityDedupPolicy
from consolidation.entities import ChildRow, ChildSnapshot, EntityKind
from consolidation.pipeline.deduplication.canonical import select_canonical
from consolidation.pipeline.deduplication.clustering import ClusterBuilder
from consolidation.pipeline.deduplication.executor import MergeExecutor
from consolidation.pipeline.deduplication.relations import KeyedRelation, WholesaleRelation
from consolidation.pipeline.deduplication.similarity import NameScorer
from consolidation.store.models import Base


C = TypeVar("C")
P = TypeVar("P", bound=EntityDedupPolicy)


class EntityProfile(ABC, Generic[C, P]):
    """Entity-specific capabilities consumed by :class:`ConsolidationProcessor`."""

    kind: EntityKind
    parent_model: Type[Base]
    keyed_relations: Tuple[KeyedRelation, ...] = ()
    wholesale_relations: Tuple[WholesaleRelation, ...] = ()

    def __init__(self, policy: P) -> None:
        self.policy = policy

    @property
    def strategy(self) -> ClusterStrategy:
        return self.policy.strategy

    @property
    def threshold(self) -> float:
        return self.policy.threshold

    @abstractmethod
    def load_candidates(self, session: Session) -> List[C]:
        """Read every record eligible for deduplication."""

    @abstractmethod
    def normalize(self, name: str) -> str:
        """Comparable form of a display name."""

    @abstractmethod
    def scorer(self) -> NameScorer:
        """Similarity scorer matching ``threshold``'s scale."""

    @abstractmethod
    def rank(self, candidate: C) -> Tuple:
        """Survivor sort key; the smallest key is kept."""

    def scope_key_of(self, candidate: C) -> Hashable:
        return None

    def member_details(self, candidate: C) -> Dict[str, Any]:
        return candidate.model_dump(mode="json", exclude={"id", "name"})

    def select_canonical(self, group: Sequence[C]) -> C:
        return select_canonical(group, self.rank)

    def cluster_builder(self) -> ClusterBuilder:
        return ClusterBuilder(
            self.scorer(),
            self.strategy,
            self.normalize,
            near_miss_margin=self.policy.near_miss_margin,
        )

    def executor(self) -> MergeExecutor:
        return MergeExecutor(
            self.parent_model,
            keyed=self.keyed_relations,
            wholesale=self.wholesale_relations,
        )

    @property
    def wholesale_names(self) -> Tuple[str, ...]:
        return tuple(relation.name for relation in self.wholesale_relations)

    def load_children(self, session: Session, parent_ids: Sequence[int]) -> ChildSnapshot:
        """Snapshot keyed rows and dependent counts for ``parent_ids``."""

        ids = sorted(set(parent_ids))
        keyed: Dict[int, List[ChildRow]] = defaultdict(list)
        dependents: Dict[int, Dict[str, int]] = defaultdict(dict)
        if not ids:
            return ChildSnapshot()

        for relation in self.keyed_relations:
            hours = relation.hours
            columns = [relation.parent, relation.key] + ([hours] if hours is not None else [])
            rows = session.execute(select(*columns).where(relation.parent.in_(ids))).all()
            for row in rows:
                keyed[row[0]].append(
                    ChildRow(
                        relation=relation.name,
                        parent_id=row[0],
                        key=row[1],
                        hours=row[2] if hours is not None else None,
                    )
                )

        for relation in self.wholesale_relations:
            rows = session.execute(
                select(relation.foreign_key, func.count())
                .where(relation.foreign_key.in_(ids))
                .group_by(relation.foreign_key)
            ).all()
            for parent_id, count in rows:
                dependents[parent_id][relation.name] = count

        return ChildSnapshot(keyed=dict(keyed), dependents=dict(dependents))


__all__ = ["EntityProfile"]
