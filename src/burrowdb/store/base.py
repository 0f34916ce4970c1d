"""Abstract document store and transaction interfaces.

The store is the system of record. Adapters implement these two classes;
the entity layer never talks to a database directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from types import TracebackType

from burrowdb.core.keys import Key
from burrowdb.core.types import Query
from burrowdb.exceptions import DocumentNotFoundError
from burrowdb.store.document import Document


class Transaction(ABC):
    """A single-store transaction.

    Used as a context manager it commits on a clean exit and rolls back when
    the block raises (and on any exit where it is still active).
    """

    @abstractmethod
    def get(self, key: Key) -> Document:
        """Read a document inside the transaction.

        Raises:
            DocumentNotFoundError: If no document exists for the key
        """

    @abstractmethod
    def put(self, document: Document) -> Key:
        """Write a document inside the transaction."""

    @abstractmethod
    def delete(self, key: Key) -> None:
        """Delete a document inside the transaction."""

    @abstractmethod
    def commit(self) -> None:
        """Apply all changes made in the transaction."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard all changes made in the transaction."""

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True until the transaction is committed or rolled back."""

    def __enter__(self) -> Transaction:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is None and self.is_active:
            self.commit()
        if self.is_active:
            self.rollback()


class DocumentStore(ABC):
    """Key-addressed hierarchical document store."""

    @abstractmethod
    def get(self, key: Key) -> Document:
        """Load a document by key.

        Raises:
            DocumentNotFoundError: If no document exists for the key
        """

    @abstractmethod
    def put(self, document: Document) -> Key:
        """Insert or replace a document; returns its key."""

    @abstractmethod
    def delete(self, key: Key) -> None:
        """Delete a document. Deleting a missing key is a no-op."""

    @abstractmethod
    def begin_transaction(self) -> Transaction:
        """Start a transaction."""

    @abstractmethod
    def prepare(self, query: Query) -> Iterator[Document]:
        """Run a query, yielding documents lazily in query order.

        Without sort clauses documents come back in key path order.
        """

    @abstractmethod
    def list_kinds(self) -> dict[str, int]:
        """Return ``{kind: document_count}`` for every stored kind."""

    def exists(self, key: Key) -> bool:
        try:
            self.get(key)
        except DocumentNotFoundError:
            return False
        return True

    def close(self) -> None:
        """Release resources held by the store."""

    def __enter__(self) -> DocumentStore:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
