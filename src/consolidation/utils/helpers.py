"""General-purpose helpers for deterministic name processing."""

from __future__ import annotations

import re
from pathlib import Path

_WORD_BOUNDARY_PATTERN = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces."""

    return _WORD_BOUNDARY_PATTERN.sub(" ", text.strip())


def ensure_directory(path: Path | str) -> Path:
    """Ensure that a directory exists and return the resolved Path."""

    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target.resolve()


__all__ = [
    "normalize_whitespace",
    "ensure_directory",
]
