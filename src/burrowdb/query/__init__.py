"""Query building."""

from burrowdb.query.builder import QueryBuilder, parse_direction

__all__ = ["QueryBuilder", "parse_direction"]
