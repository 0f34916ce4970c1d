"""In-memory document store.

Keeps deep copies of documents in a dict, so callers never share state with
the store. Query semantics follow the SQL store: missing or null sort values
order first when ascending and last when descending, and key path order
breaks ties.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from itertools import islice
from typing import Any

from burrowdb.core.keys import Key
from burrowdb.core.types import Query, SortDirection
from burrowdb.exceptions import DocumentNotFoundError, StoreError
from burrowdb.store.base import DocumentStore, Transaction
from burrowdb.store.document import Document

_DELETED = None


def _sort_value(value: Any) -> tuple[int, Any]:
    """Total order over JSON values: null < bool < number < text < other."""
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, json.dumps(value, sort_keys=True))


class MemoryTransaction(Transaction):
    """Buffers writes and applies them atomically on commit."""

    def __init__(self, store: InMemoryDocumentStore) -> None:
        self._store = store
        self._writes: dict[Key, Document | None] = {}
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def _check_active(self) -> None:
        if not self._active:
            raise StoreError("Transaction is no longer active.")

    def get(self, key: Key) -> Document:
        self._check_active()
        if key in self._writes:
            pending = self._writes[key]
            if pending is _DELETED:
                raise DocumentNotFoundError(key.path)
            return pending.copy()  # type: ignore[union-attr]
        return self._store.get(key)

    def put(self, document: Document) -> Key:
        self._check_active()
        self._writes[document.key] = document.copy()
        return document.key

    def delete(self, key: Key) -> None:
        self._check_active()
        self._writes[key] = _DELETED

    def commit(self) -> None:
        self._check_active()
        self._store._apply(self._writes)
        self._writes = {}
        self._active = False

    def rollback(self) -> None:
        self._writes = {}
        self._active = False


class InMemoryDocumentStore(DocumentStore):
    """Process-local document store for tests and embedding."""

    def __init__(self) -> None:
        self._documents: dict[Key, Document] = {}
        self._lock = threading.Lock()

    def get(self, key: Key) -> Document:
        with self._lock:
            document = self._documents.get(key)
            if document is None:
                raise DocumentNotFoundError(key.path)
            return document.copy()

    def put(self, document: Document) -> Key:
        with self._lock:
            self._documents[document.key] = document.copy()
        return document.key

    def delete(self, key: Key) -> None:
        with self._lock:
            self._documents.pop(key, None)

    def begin_transaction(self) -> MemoryTransaction:
        return MemoryTransaction(self)

    def _apply(self, writes: dict[Key, Document | None]) -> None:
        with self._lock:
            for key, document in writes.items():
                if document is _DELETED:
                    self._documents.pop(key, None)
                else:
                    self._documents[key] = document  # type: ignore[assignment]

    def _matches(self, document: Document, query: Query) -> bool:
        if document.kind != query.kind:
            return False
        if query.ancestor is not None:
            key = document.key
            if key != query.ancestor and not query.ancestor.is_ancestor_of(key):
                return False
        if query.filter is not None:
            return query.filter.matches(document.properties)
        return True

    def prepare(self, query: Query) -> Iterator[Document]:
        with self._lock:
            matched = [d.copy() for d in self._documents.values() if self._matches(d, query)]

        matched.sort(key=lambda d: d.key.path)
        # Stable sorts applied from the last clause to the first
        for clause in reversed(query.sorts):
            matched.sort(
                key=lambda d, name=clause.property: _sort_value(d.get_property(name)),
                reverse=clause.direction == SortDirection.DESCENDING,
            )

        start = query.offset or 0
        stop = start + query.limit if query.limit is not None else None
        return iter(list(islice(matched, start, stop)))

    def list_kinds(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        with self._lock:
            for key in self._documents:
                counts[key.kind] = counts.get(key.kind, 0) + 1
        return dict(sorted(counts.items()))

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()

    def __len__(self) -> int:
        return len(self._documents)
