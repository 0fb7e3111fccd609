"""Partition scoped records into duplicate groups.

Three named strategies are supported:

``seed-only``
    Every unvisited record in the scope is compared with the seed of the
    group only. A candidate similar to a member but not to the seed stays
    out, which keeps chained false positives from snowballing. Identical
    normalized names still always group, since they score the maximum.
``transitive-expansion``
    Candidates join when they match any member; groups are the connected
    components of the pairwise similarity graph.
``exact``
    Records join only when their normalized names are identical.

Records are visited in ascending id order within each scope, so "first seen"
is deterministic. Records whose normalized name is empty never group.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Hashable, List, Protocol, Sequence, Tuple, TypeVar

from consolidation.config.policies import ClusterStrategy
from consolidation.pipeline.deduplication.graph import SimilarityGraph
from consolidation.pipeline.deduplication.similarity import NameScorer, SimilarityDecision
from consolidation.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)


class Named(Protocol):
    id: int
    name: str


E = TypeVar("E", bound=Named)


@dataclass
class ClusteringResult(Generic[E]):
    """Duplicate groups plus the evidence gathered while building them."""

    groups: List[Tuple[Hashable, List[E]]]
    graph: SimilarityGraph
    normalized: Dict[int, str]
    near_misses: List[Tuple[E, E, float]] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)


def _scope_order(scope: Hashable) -> Tuple[bool, str]:
    # None sorts first; integer scopes compare numerically via zero padding.
    if scope is None:
        return (False, "")
    if isinstance(scope, int):
        return (True, f"{scope:020d}")
    return (True, str(scope))


class ClusterBuilder(Generic[E]):
    """Group records whose normalized names score at or above a threshold."""

    def __init__(
        self,
        scorer: NameScorer,
        strategy: ClusterStrategy,
        normalize: Callable[[str], str],
        *,
        near_miss_margin: float = 0.0,
    ) -> None:
        self.scorer = scorer
        self.strategy = ClusterStrategy(strategy)
        self.normalize = normalize
        self.near_miss_margin = near_miss_margin

    def cluster(
        self,
        entities: Sequence[E],
        scope_key_of: Callable[[E], Hashable],
        threshold: float,
    ) -> ClusteringResult[E]:
        graph = SimilarityGraph()
        normalized: Dict[int, str] = {}
        scopes: Dict[Hashable, List[E]] = {}
        for entity in entities:
            normalized[entity.id] = self.normalize(entity.name)
            graph.add_node(entity.id)
            scopes.setdefault(scope_key_of(entity), []).append(entity)

        near_pairs: List[Tuple[E, E, float]] = []
        comparisons = 0
        for scope in sorted(scopes, key=_scope_order):
            members = sorted(scopes[scope], key=lambda entity: entity.id)
            if self.strategy is ClusterStrategy.EXACT:
                self._link_exact(members, normalized, graph, threshold)
            elif self.strategy is ClusterStrategy.SEED_ONLY:
                comparisons += self._link_seed_only(members, normalized, graph, threshold, near_pairs)
            else:
                comparisons += self._link_transitive(members, normalized, graph, threshold, near_pairs)

        lookup = {entity.id: entity for entity in entities}
        scope_of = {entity.id: scope_key_of(entity) for entity in entities}
        groups: List[Tuple[Hashable, List[E]]] = []
        for component in graph.connected_components():
            if len(component) < 2:
                continue
            members = [lookup[entity_id] for entity_id in sorted(component)]
            groups.append((scope_of[members[0].id], members))
        groups.sort(key=lambda item: (_scope_order(item[0]), item[1][0].id))

        grouped_with = {entity.id: group[0].id for _, group in groups for entity in group}
        near_misses = [
            (a, b, score)
            for a, b, score in near_pairs
            if grouped_with.get(a.id, a.id) != grouped_with.get(b.id, b.id)
        ]

        graph_stats = graph.stats()
        stats = {
            "candidates": len(entities),
            "scopes": len(scopes),
            "comparisons": comparisons,
            "groups": len(groups),
            "grouped_records": sum(len(group) for _, group in groups),
            "near_misses": len(near_misses),
            "edges": graph_stats["edges"],
            "largest_component": graph_stats["largest_component"],
        }
        _LOGGER.debug("Clustering finished", strategy=self.strategy.value, threshold=threshold, **stats)
        return ClusteringResult(
            groups=groups,
            graph=graph,
            normalized=normalized,
            near_misses=near_misses,
            stats=stats,
        )

    def _record_near_miss(
        self,
        a: E,
        b: E,
        decision: SimilarityDecision,
        near_pairs: List[Tuple[E, E, float]],
    ) -> None:
        if self.near_miss_margin <= 0.0 or decision.passed:
            return
        if decision.score >= decision.threshold - self.near_miss_margin:
            near_pairs.append((a, b, decision.score))

    def _link_exact(
        self,
        members: Sequence[E],
        normalized: Dict[int, str],
        graph: SimilarityGraph,
        threshold: float,
    ) -> None:
        first_seen: Dict[str, E] = {}
        for entity in members:
            name = normalized[entity.id]
            if not name:
                continue
            seed = first_seen.setdefault(name, entity)
            if seed is entity:
                continue
            graph.add_edge(seed.id, entity.id, self.scorer.evaluate(name, name, threshold))

    def _link_seed_only(
        self,
        members: Sequence[E],
        normalized: Dict[int, str],
        graph: SimilarityGraph,
        threshold: float,
        near_pairs: List[Tuple[E, E, float]],
    ) -> int:
        comparisons = 0
        visited: set[int] = set()
        for index, seed in enumerate(members):
            if seed.id in visited or not normalized[seed.id]:
                continue
            visited.add(seed.id)
            for candidate in members[index + 1 :]:
                if candidate.id in visited or not normalized[candidate.id]:
                    continue
                comparisons += 1
                decision = self.scorer.evaluate(normalized[seed.id], normalized[candidate.id], threshold)
                if decision.passed:
                    graph.add_edge(seed.id, candidate.id, decision)
                    visited.add(candidate.id)
                else:
                    self._record_near_miss(seed, candidate, decision, near_pairs)
        return comparisons

    def _link_transitive(
        self,
        members: Sequence[E],
        normalized: Dict[int, str],
        graph: SimilarityGraph,
        threshold: float,
        near_pairs: List[Tuple[E, E, float]],
    ) -> int:
        comparisons = 0
        eligible = [entity for entity in members if normalized[entity.id]]
        for entity_a, entity_b in itertools.combinations(eligible, 2):
            comparisons += 1
            decision = self.scorer.evaluate(normalized[entity_a.id], normalized[entity_b.id], threshold)
            if decision.passed:
                graph.add_edge(entity_a.id, entity_b.id, decision)
            else:
                self._record_near_miss(entity_a, entity_b, decision, near_pairs)
        return comparisons


__all__ = ["ClusterBuilder", "ClusteringResult"]
