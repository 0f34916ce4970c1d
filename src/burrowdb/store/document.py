"""The property bag: a store document addressed by a key."""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from typing import Any

from burrowdb.core.keys import Key


class Document:
    """A flat mapping of property name to JSON-compatible value.

    This is the store-native form of one entity. Values are kept exactly as
    written; encoding (enum ordinals, nested entity text) happens in the
    mapping layer before values reach the document.
    """

    __slots__ = ("_key", "_properties")

    def __init__(self, key: Key, properties: Mapping[str, Any] | None = None) -> None:
        self._key = key
        self._properties: dict[str, Any] = dict(properties or {})

    @property
    def key(self) -> Key:
        return self._key

    @property
    def kind(self) -> str:
        return self._key.kind

    @property
    def parent(self) -> Key | None:
        return self._key.parent

    @property
    def properties(self) -> dict[str, Any]:
        """Return a shallow copy of all properties."""
        return dict(self._properties)

    def get_property(self, name: str, default: Any = None) -> Any:
        return self._properties.get(name, default)

    def set_property(self, name: str, value: Any) -> None:
        self._properties[name] = value

    def has_property(self, name: str) -> bool:
        return name in self._properties

    def remove_property(self, name: str) -> None:
        self._properties.pop(name, None)

    def copy(self) -> Document:
        """Return a deep copy, so stores never share mutable state with callers."""
        return Document(self._key, copy.deepcopy(self._properties))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "key": self._key.urlsafe(),
            "path": self._key.path,
            "kind": self.kind,
            "properties": dict(self._properties),
        }

    def __iter__(self) -> Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __contains__(self, name: object) -> bool:
        return name in self._properties

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self._key == other._key and self._properties == other._properties

    def __repr__(self) -> str:
        return f"Document({self._key.path!r}, {self._properties!r})"
