"""Top-level package for the entity consolidation engine."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("consolidation")
except PackageNotFoundError:  # pragma: no cover - fallback during local development
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import EntityKind, RunMode, RunReport
from .errors import ConsolidationError, UsageError

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "EntityKind",
    "RunMode",
    "RunReport",
    "ConsolidationError",
    "UsageError",
]
