"""String similarity helpers shared by the scorers and the registration lookups."""

from __future__ import annotations

from typing import Dict, Sequence

import jellyfish
from rapidfuzz import fuzz
from rapidfuzz.utils import default_process

CONTAINMENT_SCORE = 0.9
WORD_OVERLAP_WEIGHT = 0.6
CHAR_SIMILARITY_WEIGHT = 0.4
MIN_CHAR_COMPARE_LENGTH = 3


def fuzzy_features(text1: str, text2: str) -> Dict[str, float]:
    """Return the four rapidfuzz ratios (0-100) for already normalized names.

    Both names go through rapidfuzz's ``default_process`` first, so case and
    punctuation never lower the score.
    """

    text1 = default_process(text1 or "")
    text2 = default_process(text2 or "")
    if text1 == text2 and text1:
        return {
            "ratio": 100.0,
            "partial_ratio": 100.0,
            "token_sort_ratio": 100.0,
            "token_set_ratio": 100.0,
        }
    if not text1 or not text2:
        return {
            "ratio": 0.0,
            "partial_ratio": 0.0,
            "token_sort_ratio": 0.0,
            "token_set_ratio": 0.0,
        }
    return {
        "ratio": float(fuzz.ratio(text1, text2)),
        "partial_ratio": float(fuzz.partial_ratio(text1, text2)),
        "token_sort_ratio": float(fuzz.token_sort_ratio(text1, text2)),
        "token_set_ratio": float(fuzz.token_set_ratio(text1, text2)),
    }


def word_overlap_ratio(words1: Sequence[str], words2: Sequence[str]) -> float:
    """Share of words in ``words1`` that equal or prefix-match a word in ``words2``."""

    total = max(len(words1), len(words2))
    if total == 0:
        return 0.0
    common = 0
    for word1 in words1:
        for word2 in words2:
            if word1 == word2 or word1.startswith(word2) or word2.startswith(word1):
                common += 1
                break
    return common / total


def char_similarity(word1: str, word2: str) -> float:
    """Levenshtein distance normalised by the longer word, as a similarity."""

    longest = max(len(word1), len(word2))
    if longest == 0:
        return 1.0
    return 1.0 - jellyfish.levenshtein_distance(word1, word2) / longest


def max_char_similarity(
    words1: Sequence[str],
    words2: Sequence[str],
    *,
    min_length: int = MIN_CHAR_COMPARE_LENGTH,
) -> float:
    best = 0.0
    for word1 in words1:
        if len(word1) < min_length:
            continue
        for word2 in words2:
            if len(word2) < min_length:
                continue
            best = max(best, char_similarity(word1, word2))
    return best


def person_name_features(text1: str, text2: str) -> Dict[str, float]:
    """Feature breakdown for two normalized person names on a 0-1 scale.

    Exact matches short-circuit to ``1.0`` and containment (``"eben w"`` inside
    ``"eben woodbell"``) to ``0.9``. Otherwise the combined score weights word
    overlap at 0.6 and the best per-word character similarity at 0.4.
    """

    if not text1 or not text2:
        return {"combined": 0.0}
    if text1 == text2:
        return {"exact": 1.0, "combined": 1.0}
    if text1 in text2 or text2 in text1:
        return {"containment": CONTAINMENT_SCORE, "combined": CONTAINMENT_SCORE}
    words1 = text1.split(" ")
    words2 = text2.split(" ")
    overlap = word_overlap_ratio(words1, words2)
    char_sim = max_char_similarity(words1, words2)
    combined = WORD_OVERLAP_WEIGHT * overlap + CHAR_SIMILARITY_WEIGHT * char_sim
    return {
        "word_overlap": overlap,
        "char_similarity": char_sim,
        "combined": combined,
    }


def person_name_similarity(text1: str, text2: str) -> float:
    return person_name_features(text1, text2)["combined"]


__all__ = [
    "fuzzy_features",
    "word_overlap_ratio",
    "char_similarity",
    "max_char_similarity",
    "person_name_features",
    "person_name_similarity",
]
