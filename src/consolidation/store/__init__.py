"""Relational store access for the consolidation engine."""

from .models import (
    Base,
    Branch,
    Employee,
    Estimate,
    Job,
    JobSpecialShift,
    SalesPerson,
    SalesPersonBranch,
    Shift,
    SpecialShift,
)
from .session import (
    create_db_engine,
    create_session_factory,
    init_schema,
    read_session,
    transaction,
)

__all__ = [
    "Base",
    "Branch",
    "Employee",
    "Estimate",
    "Job",
    "JobSpecialShift",
    "SalesPerson",
    "SalesPersonBranch",
    "Shift",
    "SpecialShift",
    "create_db_engine",
    "create_session_factory",
    "init_schema",
    "read_session",
    "transaction",
]
