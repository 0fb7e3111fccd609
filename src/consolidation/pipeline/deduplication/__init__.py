"""Deduplication pipeline entry points and public interfaces."""

from .main import consolidate_entities
from .processor import ConsolidationProcessor, resolve_mode, run_all
from .clustering import ClusterBuilder, ClusteringResult
from .graph import SimilarityGraph, UnionFind
from .similarity import ExactNameScorer, FuzzyNameScorer, PersonNameScorer
from .planner import plan_merge
from .executor import ClusterOutcome, MergeExecutor
from .io import branch_cleanup_payload, write_run_reports

__all__ = [
    "consolidate_entities",
    "ConsolidationProcessor",
    "resolve_mode",
    "run_all",
    "ClusterBuilder",
    "ClusteringResult",
    "SimilarityGraph",
    "UnionFind",
    "ExactNameScorer",
    "FuzzyNameScorer",
    "PersonNameScorer",
    "plan_merge",
    "ClusterOutcome",
    "MergeExecutor",
    "branch_cleanup_payload",
    "write_run_reports",
]
