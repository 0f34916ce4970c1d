"""Hierarchical document keys.

A key names one document: a kind, an identifier (string name or numeric id)
and an optional parent key. Two textual forms exist:

- ``path``: readable, e.g. ``Account:acme/Invoice:#42``. Kinds and names are
  percent-quoted, numeric ids are written as ``#<id>``. A parent's path
  followed by ``/`` is a prefix of every descendant's path, which is what the
  SQL store uses for ancestor scoping.
- ``urlsafe()``: opaque URL-safe base64 of the path. This is the canonical
  string stored on entities as ``object_key``.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterator
from urllib.parse import quote, unquote
from uuid import uuid4

from burrowdb.exceptions import InvalidKeyError

PATH_SEPARATOR = "/"
PART_SEPARATOR = ":"
ID_MARKER = "#"


class Key:
    """Immutable, hashable document key."""

    __slots__ = ("_kind", "_name", "_id", "_parent")

    def __init__(
        self,
        kind: str,
        name: str | None = None,
        *,
        id: int | None = None,
        parent: Key | None = None,
    ) -> None:
        if not kind or not isinstance(kind, str):
            raise InvalidKeyError(kind, "kind must be a non-empty string")
        if (name is None) == (id is None):
            raise InvalidKeyError(kind, "exactly one of name or id is required")
        if name is not None and (not isinstance(name, str) or not name):
            raise InvalidKeyError(name, "name must be a non-empty string")
        if id is not None and (isinstance(id, bool) or not isinstance(id, int) or id <= 0):
            raise InvalidKeyError(id, "id must be a positive integer")
        if parent is not None and not isinstance(parent, Key):
            raise InvalidKeyError(parent, "parent must be a Key")

        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_id", id)
        object.__setattr__(self, "_parent", parent)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Key is immutable")

    # -- constructors -------------------------------------------------------

    @classmethod
    def new(cls, kind: str, parent: Key | None = None) -> Key:
        """Create a key with a fresh random name."""
        return cls(kind, str(uuid4()), parent=parent)

    @classmethod
    def from_path(cls, path: str) -> Key:
        """Parse a readable key path."""
        if not path:
            raise InvalidKeyError(path, "empty key path")

        key: Key | None = None
        for element in path.split(PATH_SEPARATOR):
            kind_part, sep, ident = element.partition(PART_SEPARATOR)
            if not sep or not kind_part or not ident:
                raise InvalidKeyError(path, f"malformed path element '{element}'")
            kind = unquote(kind_part)
            if ident.startswith(ID_MARKER):
                digits = ident[len(ID_MARKER) :]
                if not digits.isdigit():
                    raise InvalidKeyError(path, f"malformed numeric id '{ident}'")
                key = cls(kind, id=int(digits), parent=key)
            else:
                key = cls(kind, unquote(ident), parent=key)

        if key is None:
            raise InvalidKeyError(path, "no path elements")
        return key

    @classmethod
    def from_urlsafe(cls, text: str) -> Key:
        """Decode the opaque string form produced by :meth:`urlsafe`."""
        if not text or not isinstance(text, str):
            raise InvalidKeyError(text, "empty key string")
        padded = text + "=" * (-len(text) % 4)
        try:
            raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
            path = raw.decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise InvalidKeyError(text, f"not a key string ({e})") from e
        key = cls.from_path(path)
        if key.urlsafe() != text:
            raise InvalidKeyError(text, "not the canonical key string")
        return key

    @classmethod
    def coerce(cls, value: Key | str) -> Key:
        """Accept a key or its URL-safe string."""
        if isinstance(value, Key):
            return value
        if isinstance(value, str):
            return cls.from_urlsafe(value)
        raise InvalidKeyError(value, "expected a Key or key string")

    # -- accessors ----------------------------------------------------------

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def id(self) -> int | None:
        return self._id

    @property
    def parent(self) -> Key | None:
        return self._parent

    @property
    def id_or_name(self) -> str | int:
        return self._name if self._name is not None else self._id  # type: ignore[return-value]

    @property
    def root(self) -> Key:
        key = self
        while key._parent is not None:
            key = key._parent
        return key

    def ancestors(self) -> Iterator[Key]:
        """Yield parent, grandparent, ... up to the root."""
        key = self._parent
        while key is not None:
            yield key
            key = key._parent

    def is_ancestor_of(self, other: Key) -> bool:
        return any(ancestor == self for ancestor in other.ancestors())

    def pairs(self) -> list[tuple[str, str | int]]:
        """Return ``(kind, id_or_name)`` pairs from the root down to this key."""
        chain = [self, *self.ancestors()]
        return [(key.kind, key.id_or_name) for key in reversed(chain)]

    # -- textual forms ------------------------------------------------------

    @property
    def path(self) -> str:
        element = quote(self._kind, safe="") + PART_SEPARATOR
        if self._name is not None:
            element += quote(self._name, safe="")
        else:
            element += f"{ID_MARKER}{self._id}"
        if self._parent is None:
            return element
        return self._parent.path + PATH_SEPARATOR + element

    def urlsafe(self) -> str:
        return base64.urlsafe_b64encode(self.path.encode("utf-8")).rstrip(b"=").decode("ascii")

    # -- value semantics ----------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __str__(self) -> str:
        return self.urlsafe()

    def __repr__(self) -> str:
        return f"Key({self.path!r})"

    def __reduce__(self) -> tuple[object, ...]:
        return (Key.from_path, (self.path,))
