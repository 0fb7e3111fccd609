"""Exception hierarchy for consolidation runs."""

from __future__ import annotations


class ConsolidationError(RuntimeError):
    """Base class for every error raised by the consolidation engine."""


class UsageError(ConsolidationError):
    """Raised when a run is requested without an explicit, unambiguous mode."""


class CandidateLoadError(ConsolidationError):
    """Raised when candidate records or their children cannot be read."""


class PlanningError(ConsolidationError):
    """Raised when a merge plan would violate a consolidation invariant."""


class MergeExecutionError(ConsolidationError):
    """Raised when a planned action cannot be applied to the store."""

    def __init__(self, message: str, *, canonical_id: int | None = None) -> None:
        super().__init__(message)
        self.canonical_id = canonical_id


__all__ = [
    "ConsolidationError",
    "UsageError",
    "CandidateLoadError",
    "PlanningError",
    "MergeExecutionError",
]
