"""In-memory similarity graph and union-find utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from consolidation.pipeline.deduplication.similarity import SimilarityDecision


@dataclass
class EdgeMetadata:
    """Metadata captured for an edge in the similarity graph."""

    score: float
    threshold: float
    driver: str
    features: Dict[str, float]


class UnionFind:
    """Disjoint-set data structure with path compression."""

    def __init__(self) -> None:
        self._parent: Dict[int, int] = {}
        self._rank: Dict[int, int] = {}

    def add(self, item: int) -> None:
        if item not in self._parent:
            self._parent[item] = item
            self._rank[item] = 0

    def find(self, item: int) -> int:
        parent = self._parent.get(item)
        if parent is None:
            self.add(item)
            return item
        if parent != item:
            self._parent[item] = self.find(parent)
        return self._parent[item]

    def union(self, a: int, b: int) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return
        rank_a = self._rank[root_a]
        rank_b = self._rank[root_b]
        if rank_a < rank_b:
            self._parent[root_a] = root_b
        elif rank_a > rank_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_b] = root_a
            self._rank[root_a] += 1

    def components(self) -> Dict[int, Set[int]]:
        groups: Dict[int, Set[int]] = {}
        for item in self._parent:
            root = self.find(item)
            groups.setdefault(root, set()).add(item)
        return groups


class SimilarityGraph:
    """Graph of record ids linked by passing similarity decisions."""

    def __init__(self) -> None:
        self.nodes: Set[int] = set()
        self.edges: Dict[Tuple[int, int], EdgeMetadata] = {}
        self._uf = UnionFind()

    def add_node(self, node_id: int) -> None:
        if node_id in self.nodes:
            return
        self.nodes.add(node_id)
        self._uf.add(node_id)

    def add_edge(self, node_a: int, node_b: int, decision: SimilarityDecision) -> None:
        if node_a == node_b:
            return
        ordered = (min(node_a, node_b), max(node_a, node_b))
        self.add_node(node_a)
        self.add_node(node_b)
        self.edges[ordered] = EdgeMetadata(
            score=decision.score,
            threshold=decision.threshold,
            driver=decision.driver,
            features=dict(decision.features),
        )
        self._uf.union(node_a, node_b)

    def edges_within(self, members: Set[int]) -> List[Tuple[int, int, EdgeMetadata]]:
        return [
            (a, b, meta)
            for (a, b), meta in sorted(self.edges.items())
            if a in members and b in members
        ]

    def connected_components(self) -> List[Set[int]]:
        groups = self._uf.components()
        components = [group for group in groups.values() if group]
        components.sort(key=lambda group: min(group))
        return components

    def stats(self) -> Dict[str, int]:
        if not self.nodes:
            return {"nodes": 0, "edges": 0, "components": 0, "largest_component": 0}
        components = self.connected_components()
        largest = max((len(component) for component in components), default=1)
        return {
            "nodes": len(self.nodes),
            "edges": len(self.edges),
            "components": len(components),
            "largest_component": largest,
        }


__all__ = ["SimilarityGraph", "UnionFind", "EdgeMetadata"]
