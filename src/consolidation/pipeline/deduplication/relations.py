"""Descriptions of the child tables a parent record owns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Type

from sqlalchemy.orm import InstrumentedAttribute

from consolidation.store.models import Base


@dataclass(frozen=True)
class WholesaleRelation:
    """A dependent table whose foreign key is repointed without conflicts."""

    name: str
    model: Type[Base]
    column: str

    @property
    def foreign_key(self) -> InstrumentedAttribute:
        return getattr(self.model, self.column)


@dataclass(frozen=True)
class KeyedRelation:
    """A child table with a natural key under its parent.

    Rows of two parents collide when they share ``key_column``; colliding rows
    fold into the survivor's row, summing ``hours_column`` when there is one.
    """

    name: str
    model: Type[Base]
    parent_column: str
    key_column: str
    hours_column: Optional[str] = None

    @property
    def parent(self) -> InstrumentedAttribute:
        return getattr(self.model, self.parent_column)

    @property
    def key(self) -> InstrumentedAttribute:
        return getattr(self.model, self.key_column)

    @property
    def hours(self) -> Optional[InstrumentedAttribute]:
        if self.hours_column is None:
            return None
        return getattr(self.model, self.hours_column)


__all__ = ["WholesaleRelation", "KeyedRelation"]
