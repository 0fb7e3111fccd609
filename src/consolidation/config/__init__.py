"""Configuration surface for the consolidation engine."""

from .policies import Policies, load_policies
from .settings import DatabaseConfig, PathsConfig, Settings, get_settings

__all__ = [
    "Policies",
    "load_policies",
    "Settings",
    "get_settings",
    "PathsConfig",
    "DatabaseConfig",
]
