"""Record registration helpers used by synchronization flows."""

from .branches import find_branch, find_or_create_branch
from .housekeeping import HousekeepingResult, deactivate_idle_salespersons
from .salespersons import MatchKind, RegistrationResult, register_salesperson

__all__ = [
    "find_branch",
    "find_or_create_branch",
    "HousekeepingResult",
    "deactivate_idle_salespersons",
    "MatchKind",
    "RegistrationResult",
    "register_salesperson",
]
