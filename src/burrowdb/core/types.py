"""Core types and specifications for BurrowDB.

Query types are pydantic models so they can be dumped to JSON for logging
and the CLI's ``--json`` output.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from burrowdb.core.keys import Key


class SortDirection(StrEnum):
    """Sort direction for a query sort clause."""

    ASCENDING = "asc"
    DESCENDING = "desc"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid direction values."""
        return [d.value for d in cls]


class FilterPredicate(BaseModel):
    """Equality predicate on one document property."""

    property: str
    operator: Literal["eq"] = "eq"
    value: Any = None

    def matches(self, properties: dict[str, Any]) -> bool:
        """Evaluate against a property mapping (used by in-memory stores)."""
        if self.property not in properties:
            return False
        stored = properties[self.property]
        # bool is an int subclass; keep True from matching 1
        if isinstance(stored, bool) != isinstance(self.value, bool):
            return False
        return stored == self.value


class CompositeFilter(BaseModel):
    """Logical AND of two or more equality predicates."""

    operator: Literal["and"] = "and"
    filters: list[FilterPredicate] = Field(..., min_length=2)

    def matches(self, properties: dict[str, Any]) -> bool:
        return all(f.matches(properties) for f in self.filters)


class SortClause(BaseModel):
    """One ``(property, direction)`` ordering term."""

    property: str
    direction: SortDirection = SortDirection.ASCENDING


class Query(BaseModel):
    """A store query: kind, optional ancestor scope, filter and ordering."""

    kind: str
    ancestor: Key | None = None
    filter: FilterPredicate | CompositeFilter | None = None
    sorts: list[SortClause] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def describe(self) -> dict[str, Any]:
        """Return a JSON-serializable summary."""
        return {
            "kind": self.kind,
            "ancestor": self.ancestor.path if self.ancestor is not None else None,
            "filter": self.filter.model_dump() if self.filter is not None else None,
            "sorts": [s.model_dump(mode="json") for s in self.sorts],
            "limit": self.limit,
            "offset": self.offset,
        }
