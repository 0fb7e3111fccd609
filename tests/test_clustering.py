"""Tests for duplicate-group construction."""

from __future__ import annotations

from typing import Dict, FrozenSet

import pytest

from consolidation.config.policies import ClusterStrategy
from consolidation.entities import JobCandidate, SalesPersonCandidate
from consolidation.pipeline.deduplication.clustering import ClusterBuilder
from consolidation.pipeline.deduplication.graph import SimilarityGraph, UnionFind
from consolidation.pipeline.deduplication.similarity import (
    ExactNameScorer,
    FuzzyNameScorer,
    PersonNameScorer,
    SimilarityDecision,
)
from consolidation.utils.normalization import (
    normalize_branch_name,
    normalize_job_name,
    normalize_person_name,
)


class TableScorer:
    """Scores name pairs from a lookup table; identical names score 100."""

    scale = 100.0

    def __init__(self, table: Dict[FrozenSet[str], float]) -> None:
        self.table = table

    def score(self, name_a: str, name_b: str) -> float:
        if name_a == name_b:
            return 100.0
        return self.table.get(frozenset({name_a, name_b}), 0.0)

    def evaluate(self, name_a: str, name_b: str, threshold: float) -> SimilarityDecision:
        score = self.score(name_a, name_b)
        return SimilarityDecision(
            score=score,
            threshold=threshold,
            passed=score >= threshold,
            features={"table": score},
            driver="table",
        )


def make_job(job_id: int, name: str, branch_id: int | None = 1, shifts: int = 0) -> JobCandidate:
    return JobCandidate(id=job_id, name=name, branch_id=branch_id, shift_count=shifts)


def chain_scorer() -> TableScorer:
    # a~b and b~c are strong, a~c is weak
    return TableScorer(
        {
            frozenset({"a", "b"}): 90.0,
            frozenset({"b", "c"}): 90.0,
            frozenset({"a", "c"}): 50.0,
        }
    )


def ids(result) -> list[list[int]]:
    return [[member.id for member in group] for _, group in result.groups]


def test_seed_only_compares_candidates_to_the_seed() -> None:
    builder = ClusterBuilder(chain_scorer(), ClusterStrategy.SEED_ONLY, lambda name: name)
    jobs = [make_job(3, "c"), make_job(1, "a"), make_job(2, "b")]

    result = builder.cluster(jobs, lambda job: job.branch_id, 85)

    assert ids(result) == [[1, 2]]
    assert result.stats["comparisons"] == 2


def test_transitive_expansion_joins_through_any_member() -> None:
    builder = ClusterBuilder(chain_scorer(), ClusterStrategy.TRANSITIVE_EXPANSION, lambda name: name)
    jobs = [make_job(1, "a"), make_job(2, "b"), make_job(3, "c")]

    result = builder.cluster(jobs, lambda job: job.branch_id, 85)

    assert ids(result) == [[1, 2, 3]]
    assert [(a, b) for a, b, _ in result.graph.edges_within({1, 2, 3})] == [(1, 2), (2, 3)]
    assert result.stats["edges"] == 2
    assert result.stats["largest_component"] == 3


def test_scopes_are_never_crossed() -> None:
    builder = ClusterBuilder(FuzzyNameScorer(), ClusterStrategy.SEED_ONLY, normalize_job_name)
    jobs = [
        make_job(10, "Smith Attic - REVISED", branch_id=1),
        make_job(22, "Smith Attic", branch_id=1),
        make_job(23, "Smith Attic", branch_id=2),
    ]

    result = builder.cluster(jobs, lambda job: job.branch_id, 85)

    assert ids(result) == [[10, 22]]
    scope_key, _ = result.groups[0]
    assert scope_key == 1


def test_empty_normalized_names_never_group() -> None:
    builder = ClusterBuilder(FuzzyNameScorer(), ClusterStrategy.SEED_ONLY, normalize_job_name)
    jobs = [make_job(1, " - REVISED"), make_job(2, "   "), make_job(3, "")]

    result = builder.cluster(jobs, lambda job: job.branch_id, 85)

    assert result.groups == []


def test_exact_strategy_requires_identical_normalized_names() -> None:
    builder = ClusterBuilder(ExactNameScorer(), ClusterStrategy.EXACT, normalize_branch_name)
    branches = [make_job(1, "San Diego"), make_job(2, "san  DIEGO"), make_job(3, "San Diego East")]

    result = builder.cluster(branches, lambda _: None, 100)

    assert ids(result) == [[1, 2]]
    assert result.normalized[2] == "San Diego"


@pytest.mark.parametrize(
    "strategy",
    [ClusterStrategy.SEED_ONLY, ClusterStrategy.TRANSITIVE_EXPANSION],
)
def test_identical_names_always_group(strategy: ClusterStrategy) -> None:
    builder = ClusterBuilder(chain_scorer(), strategy, lambda name: name)
    jobs = [make_job(1, "a"), make_job(2, "c"), make_job(3, "c")]

    result = builder.cluster(jobs, lambda job: job.branch_id, 99)

    assert ids(result) == [[2, 3]]


def test_near_misses_are_reported_within_margin() -> None:
    scorer = TableScorer({frozenset({"a", "b"}): 80.0, frozenset({"a", "c"}): 60.0})
    builder = ClusterBuilder(
        scorer,
        ClusterStrategy.TRANSITIVE_EXPANSION,
        lambda name: name,
        near_miss_margin=10.0,
    )
    jobs = [make_job(1, "a"), make_job(2, "b"), make_job(3, "c")]

    result = builder.cluster(jobs, lambda job: job.branch_id, 85)

    assert result.groups == []
    assert [(a.id, b.id, score) for a, b, score in result.near_misses] == [(1, 2, 80.0)]


def test_near_misses_inside_one_group_are_dropped() -> None:
    builder = ClusterBuilder(
        chain_scorer(),
        ClusterStrategy.TRANSITIVE_EXPANSION,
        lambda name: name,
        near_miss_margin=40.0,
    )
    jobs = [make_job(1, "a"), make_job(2, "b"), make_job(3, "c")]

    result = builder.cluster(jobs, lambda job: job.branch_id, 85)

    assert result.near_misses == []


def test_salesperson_clustering_uses_person_scorer() -> None:
    builder = ClusterBuilder(
        PersonNameScorer(),
        ClusterStrategy.TRANSITIVE_EXPANSION,
        normalize_person_name,
    )
    people = [
        SalesPersonCandidate(id=1, name="Eben W"),
        SalesPersonCandidate(id=2, name="Eben Woodbell"),
        SalesPersonCandidate(id=3, name="Maria Lopez"),
    ]

    result = builder.cluster(people, lambda _: None, 0.7)

    assert ids(result) == [[1, 2]]
    [(_, _, edge)] = result.graph.edges_within({1, 2})
    assert edge.driver == "containment"


def test_union_find_components() -> None:
    uf = UnionFind()
    for item in (1, 2, 3, 4):
        uf.add(item)
    uf.union(1, 2)
    uf.union(3, 2)
    components = sorted(sorted(group) for group in uf.components().values())
    assert components == [[1, 2, 3], [4]]


def test_similarity_graph_stats() -> None:
    graph = SimilarityGraph()
    graph.add_node(1)
    graph.add_node(2)
    graph.add_node(3)
    decision = SimilarityDecision(score=90.0, threshold=85.0, passed=True, features={"ratio": 90.0}, driver="ratio")
    graph.add_edge(2, 1, decision)
    assert graph.stats() == {"nodes": 3, "edges": 1, "components": 2, "largest_component": 2}
    assert [(a, b) for a, b, _ in graph.edges_within({1, 2})] == [(1, 2)]
