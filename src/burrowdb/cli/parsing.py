"""Input parsing utilities for CLI commands."""

import json
from typing import Any

from burrowdb.core.keys import PART_SEPARATOR, Key
from burrowdb.core.types import SortDirection


def parse_key(text: str) -> Key:
    """Parse a key given either as a readable path or as a URL-safe string.

    Examples:
        "Customer:acme/Order:#42" → Key("Customer:acme/Order:#42")
        "Q3VzdG9tZXI6YWNtZQ" → Key("Customer:acme")

    Raises:
        InvalidKeyError: If the text is neither form
    """
    if PART_SEPARATOR in text:
        return Key.from_path(text)
    return Key.from_urlsafe(text)


def parse_value(text: str) -> Any:
    """Parse a filter value as JSON, falling back to the raw string.

    Examples:
        "42" → 42, "true" → True, "null" → None, "acme" → "acme"
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def parse_filter(spec: str) -> tuple[str, Any]:
    """Parse a ``name=value`` filter specification.

    Raises:
        ValueError: If spec format is invalid
    """
    name, sep, value = spec.partition("=")
    if not sep or not name:
        raise ValueError(f"Invalid filter: '{spec}'. Expected format: name=value")
    return name, parse_value(value)


def parse_sort(spec: str) -> tuple[str, SortDirection]:
    """Parse a ``name[:asc|desc]`` sort specification.

    Raises:
        ValueError: If spec format is invalid
    """
    name, sep, direction = spec.partition(":")
    if not name:
        raise ValueError(f"Invalid sort: '{spec}'. Expected format: name[:asc|desc]")
    if not sep:
        return name, SortDirection.ASCENDING
    try:
        return name, SortDirection(direction.lower())
    except ValueError:
        raise ValueError(
            f"Invalid sort direction: '{direction}'. Supported: {', '.join(SortDirection.values())}"
        ) from None


def parse_key_elements(elements: list[str]) -> Key:
    """Build a key from ``KIND:NAME`` elements, root first.

    A name of the form ``#123`` is a numeric id.

    Raises:
        ValueError: If an element is malformed
    """
    key: Key | None = None
    for element in elements:
        kind, sep, ident = element.partition(PART_SEPARATOR)
        if not sep or not kind or not ident:
            raise ValueError(f"Invalid key element: '{element}'. Expected format: KIND:NAME")
        if ident.startswith("#") and ident[1:].isdigit():
            key = Key(kind, id=int(ident[1:]), parent=key)
        else:
            key = Key(kind, ident, parent=key)
    if key is None:
        raise ValueError("At least one KIND:NAME element is required")
    return key
