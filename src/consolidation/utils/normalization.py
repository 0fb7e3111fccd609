"""Name normalization for the entity types handled by the consolidation engine.

Each normalizer is a pure, total function: ``None`` or empty input yields an
empty string and no normalizer raises on unexpected text.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Pattern, Tuple

from .helpers import normalize_whitespace

DEFAULT_JOB_SUFFIXES: Tuple[str, ...] = (
    "ARL",
    "REVISED",
    "SM",
    "CLI",
    "PM",
    "SD",
    "LAK",
    "WA",
    "CA",
)

_PUNCTUATION_PATTERN = re.compile(r"[^\w\s]", re.UNICODE)


@lru_cache(maxsize=32)
def _suffix_pattern(tokens: Tuple[str, ...]) -> Pattern[str] | None:
    cleaned = [re.escape(token.strip()) for token in tokens if token and token.strip()]
    if not cleaned:
        return None
    return re.compile(r"\s*-\s*(?:" + "|".join(cleaned) + r")\s*$", re.IGNORECASE)


def strip_qualifier_suffixes(text: str, tokens: Iterable[str]) -> str:
    """Remove one trailing ``- TOKEN`` qualifier.

    Only the last qualifier goes: ``"Lee Crawlspace - CLI - REVISED"`` becomes
    ``"Lee Crawlspace - CLI"``, which still scores high against the bare name.
    """

    pattern = _suffix_pattern(tuple(tokens))
    if pattern is None:
        return text
    return pattern.sub("", text, count=1)


def normalize_job_name(raw: str | None, suffix_tokens: Iterable[str] = DEFAULT_JOB_SUFFIXES) -> str:
    """Canonical job name: qualifier suffixes removed, whitespace collapsed."""

    if not raw:
        return ""
    return normalize_whitespace(strip_qualifier_suffixes(raw, suffix_tokens))


def normalize_branch_name(raw: str | None) -> str:
    """Canonical branch name with every word capitalised.

    >>> normalize_branch_name("  san   DIEGO ")
    'San Diego'
    """

    if not raw:
        return ""
    words = normalize_whitespace(raw).split(" ")
    return " ".join(word[:1].upper() + word[1:].lower() for word in words if word)


def normalize_person_name(raw: str | None) -> str:
    """Aggressive form used for salesperson matching: lowercase, no punctuation."""

    if not raw:
        return ""
    lowered = normalize_whitespace(raw.lower())
    return normalize_whitespace(_PUNCTUATION_PATTERN.sub("", lowered))


__all__ = [
    "DEFAULT_JOB_SUFFIXES",
    "strip_qualifier_suffixes",
    "normalize_job_name",
    "normalize_branch_name",
    "normalize_person_name",
]
