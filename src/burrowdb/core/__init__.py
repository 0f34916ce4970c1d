"""Core components for BurrowDB."""

from burrowdb.core.connection import DatabaseConnection
from burrowdb.core.keys import Key
from burrowdb.core.types import (
    CompositeFilter,
    FilterPredicate,
    Query,
    SortClause,
    SortDirection,
)

__all__ = [
    "DatabaseConnection",
    "Key",
    "SortDirection",
    "FilterPredicate",
    "CompositeFilter",
    "SortClause",
    "Query",
]
