"""Fluent builder for store queries."""

from __future__ import annotations

from typing import Any

from burrowdb.core.keys import Key
from burrowdb.core.types import (
    CompositeFilter,
    FilterPredicate,
    Query,
    SortClause,
    SortDirection,
)
from burrowdb.exceptions import QueryError


def parse_direction(direction: SortDirection | str) -> SortDirection:
    """Accept a SortDirection or its text value ("asc" / "desc")."""
    if isinstance(direction, SortDirection):
        return direction
    try:
        return SortDirection(str(direction).lower())
    except ValueError:
        raise QueryError(
            f"Invalid sort direction: '{direction}'",
            {"valid_directions": SortDirection.values()},
        ) from None


class QueryBuilder:
    """Accumulates equality filters, sort clauses and fetch options for one kind.

    Filters are ANDed. Exactly one filter is applied as a single predicate;
    two or more become a composite.

    Example:
        query = (
            QueryBuilder("Order", ancestor=customer_key)
            .filter("state", 1)
            .sort("placed_at", "desc")
            .limit(10)
            .build()
        )
    """

    def __init__(self, kind: str, ancestor: Key | None = None) -> None:
        self.kind = kind
        self._ancestor = ancestor
        self._filters: list[FilterPredicate] = []
        self._sorts: list[SortClause] = []
        self._limit: int | None = None
        self._offset: int | None = None

    @property
    def ancestor_key(self) -> Key | None:
        return self._ancestor

    @property
    def filters(self) -> list[FilterPredicate]:
        return list(self._filters)

    @property
    def sorts(self) -> list[SortClause]:
        return list(self._sorts)

    def ancestor(self, key: Key | None) -> QueryBuilder:
        self._ancestor = key
        return self

    def filter(self, property_name: str, value: Any) -> QueryBuilder:
        self._filters.append(FilterPredicate(property=property_name, value=value))
        return self

    def sort(
        self, property_name: str, direction: SortDirection | str = SortDirection.ASCENDING
    ) -> QueryBuilder:
        self._sorts.append(SortClause(property=property_name, direction=parse_direction(direction)))
        return self

    def limit(self, limit: int | None) -> QueryBuilder:
        if limit is not None and limit < 0:
            raise QueryError(f"Limit must not be negative, got {limit}")
        self._limit = limit
        return self

    def offset(self, offset: int | None) -> QueryBuilder:
        if offset is not None and offset < 0:
            raise QueryError(f"Offset must not be negative, got {offset}")
        self._offset = offset
        return self

    def build(self) -> Query:
        query_filter: FilterPredicate | CompositeFilter | None = None
        if len(self._filters) == 1:
            query_filter = self._filters[0]
        elif self._filters:
            query_filter = CompositeFilter(filters=list(self._filters))

        return Query(
            kind=self.kind,
            ancestor=self._ancestor,
            filter=query_filter,
            sorts=list(self._sorts),
            limit=self._limit,
            offset=self._offset,
        )

    def __repr__(self) -> str:
        return (
            f"QueryBuilder(kind={self.kind!r}, filters={len(self._filters)}, "
            f"sorts={len(self._sorts)})"
        )
