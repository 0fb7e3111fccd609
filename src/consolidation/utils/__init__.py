"""Utility helpers shared across the consolidation engine."""

from .helpers import ensure_directory, normalize_whitespace
from .logging import configure_logging, get_logger
from .normalization import (
    normalize_branch_name,
    normalize_job_name,
    normalize_person_name,
    strip_qualifier_suffixes,
)
from .similarity import (
    fuzzy_features,
    person_name_features,
    person_name_similarity,
)

__all__ = [
    "ensure_directory",
    "normalize_whitespace",
    "configure_logging",
    "get_logger",
    "normalize_branch_name",
    "normalize_job_name",
    "normalize_person_name",
    "strip_qualifier_suffixes",
    "fuzzy_features",
    "person_name_features",
    "person_name_similarity",
]
