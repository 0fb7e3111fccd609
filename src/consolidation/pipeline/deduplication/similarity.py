"""Similarity scorers used to decide whether two normalized names are duplicates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Protocol

from consolidation.utils.logging import get_logger
from consolidation.utils.similarity import fuzzy_features, person_name_features, person_name_similarity


_LOGGER = get_logger(module=__name__)


@dataclass
class SimilarityDecision:
    """Outcome of a similarity evaluation for a name pair."""

    score: float
    threshold: float
    passed: bool
    features: Dict[str, float]
    driver: str


class NameScorer(Protocol):
    """Scores two normalized names; ``scale`` is the maximum score."""

    scale: float

    def score(self, name_a: str, name_b: str) -> float: ...

    def evaluate(self, name_a: str, name_b: str, threshold: float) -> SimilarityDecision: ...


def _decide(features: Dict[str, float], threshold: float, *, combined_key: str | None = None) -> SimilarityDecision:
    if combined_key is not None:
        score = features.get(combined_key, 0.0)
        drivers = {key: value for key, value in features.items() if key != combined_key}
        driver = max(drivers, key=drivers.__getitem__) if drivers else combined_key
    else:
        driver = max(features, key=features.__getitem__) if features else ""
        score = features.get(driver, 0.0)
    return SimilarityDecision(
        score=score,
        threshold=threshold,
        passed=score >= threshold,
        features=dict(features),
        driver=driver,
    )


class FuzzyNameScorer:
    """Optimistic matcher: the best of four fuzzy ratios on a 0-100 scale.

    A strong match on any single dimension (whole string, best substring,
    sorted tokens or token sets) is enough to count as a match.
    """

    scale = 100.0

    def score(self, name_a: str, name_b: str) -> float:
        features = fuzzy_features(name_a, name_b)
        return max(features.values())

    def evaluate(self, name_a: str, name_b: str, threshold: float) -> SimilarityDecision:
        decision = _decide(fuzzy_features(name_a, name_b), threshold)
        _LOGGER.debug(
            "Evaluated fuzzy similarity",
            name_a=name_a,
            name_b=name_b,
            score=decision.score,
            threshold=threshold,
            driver=decision.driver,
        )
        return decision


class PersonNameScorer:
    """Lighter person-name matcher on a 0-1 scale (containment, word overlap, characters)."""

    scale = 1.0

    def score(self, name_a: str, name_b: str) -> float:
        return person_name_similarity(name_a, name_b)

    def evaluate(self, name_a: str, name_b: str, threshold: float) -> SimilarityDecision:
        decision = _decide(person_name_features(name_a, name_b), threshold, combined_key="combined")
        _LOGGER.debug(
            "Evaluated person-name similarity",
            name_a=name_a,
            name_b=name_b,
            score=decision.score,
            threshold=threshold,
            driver=decision.driver,
        )
        return decision


class ExactNameScorer:
    """Only byte-identical normalized names match."""

    scale = 100.0

    def score(self, name_a: str, name_b: str) -> float:
        return self.scale if name_a and name_a == name_b else 0.0

    def evaluate(self, name_a: str, name_b: str, threshold: float) -> SimilarityDecision:
        score = self.score(name_a, name_b)
        return SimilarityDecision(
            score=score,
            threshold=threshold,
            passed=score >= threshold and score > 0.0,
            features={"exact": score},
            driver="exact",
        )


__all__ = [
    "SimilarityDecision",
    "NameScorer",
    "FuzzyNameScorer",
    "PersonNameScorer",
    "ExactNameScorer",
]
