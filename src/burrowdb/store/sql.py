"""SQL document store on SQLAlchemy.

Documents live in the single ``bdb_documents`` table with one JSON column
for all properties. Equality filters and sorts are compiled to JSON
operators per dialect:

- PostgreSQL: ``@>`` containment for equality, ``->`` for ordering
- SQLite: ``json_extract`` / ``json_type`` from the JSON1 extension

Ancestor scoping uses the key path prefix property: every descendant's path
starts with ``ancestor.path + "/"``.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Iterator
from typing import Any

from sqlalchemy import ColumnElement, and_, cast, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from burrowdb.core.connection import DatabaseConnection
from burrowdb.core.keys import PATH_SEPARATOR, Key
from burrowdb.core.types import CompositeFilter, FilterPredicate, Query, SortDirection
from burrowdb.exceptions import DocumentNotFoundError, QueryError, StoreError
from burrowdb.store.base import DocumentStore, Transaction
from burrowdb.store.document import Document
from burrowdb.store.models import Base, DocumentRecord

logger = logging.getLogger(__name__)


def _json_path(property_name: str) -> str:
    """Build a SQLite JSON path for a top-level property."""
    return '$."' + property_name + '"'


class SQLTransaction(Transaction):
    """Transaction bound to one SQLAlchemy session."""

    def __init__(self, store: SQLDocumentStore, session: Session) -> None:
        self._store = store
        self._session = session
        try:
            self._session.begin()
        except SQLAlchemyError as e:
            session.close()
            raise StoreError(f"Failed to begin transaction: {e}") from e
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def _check_active(self) -> None:
        if not self._active:
            raise StoreError("Transaction is no longer active.")

    def get(self, key: Key) -> Document:
        self._check_active()
        # FOR UPDATE on PostgreSQL; SQLite relies on BEGIN at transaction start
        try:
            record = self._session.get(DocumentRecord, key.path, with_for_update=True)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load document '{key.path}': {e}") from e
        if record is None:
            raise DocumentNotFoundError(key.path)
        return self._store._to_document(record)

    def put(self, document: Document) -> Key:
        self._check_active()
        try:
            self._store._write(self._session, document)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to store document '{document.key.path}': {e}") from e
        return document.key

    def delete(self, key: Key) -> None:
        self._check_active()
        try:
            self._session.execute(delete(DocumentRecord).where(DocumentRecord.path == key.path))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete document '{key.path}': {e}") from e

    def commit(self) -> None:
        self._check_active()
        try:
            self._session.commit()
        except Exception as e:
            raise StoreError(f"Failed to commit transaction: {e}") from e
        finally:
            if not self._session.in_transaction():
                self._active = False
                self._session.close()

    def rollback(self) -> None:
        if not self._active:
            return
        try:
            self._session.rollback()
        finally:
            self._active = False
            self._session.close()


class SQLDocumentStore(DocumentStore):
    """Document store backed by PostgreSQL (JSONB) or SQLite (JSON1)."""

    def __init__(self, url: str | DatabaseConnection, echo: bool = False) -> None:
        """Initialize the store and create the document table if needed.

        Args:
            url: Database URL or an existing DatabaseConnection
            echo: Whether to echo SQL statements (ignored for a connection)
        """
        if isinstance(url, DatabaseConnection):
            self._connection = url
        else:
            self._connection = DatabaseConnection(url, echo=echo)
        self._initialized = False
        self.initialize()

    @property
    def connection(self) -> DatabaseConnection:
        return self._connection

    def initialize(self) -> None:
        """Create the document table. Idempotent."""
        if self._initialized:
            return
        # DocumentRecord.__table__ is a Table, a FromClause subclass
        Base.metadata.create_all(
            self._connection.engine,
            tables=[DocumentRecord.__table__],  # type: ignore[list-item]
        )
        self._initialized = True
        logger.info(f"Document store ready ({self._connection.dialect})")

    # -- record <-> document ------------------------------------------------

    @staticmethod
    def _to_document(record: DocumentRecord) -> Document:
        return Document(Key.from_path(record.path), copy.deepcopy(record.properties or {}))

    @staticmethod
    def _write(session: Session, document: Document) -> None:
        key = document.key
        properties = copy.deepcopy(document.properties)
        record = session.get(DocumentRecord, key.path)
        if record is None:
            session.add(
                DocumentRecord(
                    path=key.path,
                    kind=key.kind,
                    parent_path=key.parent.path if key.parent is not None else None,
                    properties=properties,
                )
            )
        else:
            # Assign a new dict so the JSON column is flagged dirty
            record.properties = properties
        session.flush()

    # -- CRUD ---------------------------------------------------------------

    def get(self, key: Key) -> Document:
        try:
            with self._connection.get_session() as session:
                record = session.get(DocumentRecord, key.path)
                if record is None:
                    raise DocumentNotFoundError(key.path)
                return self._to_document(record)
        except DocumentNotFoundError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to load document '{key.path}': {e}") from e

    def put(self, document: Document) -> Key:
        try:
            with self._connection.get_session() as session:
                self._write(session, document)
                session.commit()
            return document.key
        except Exception as e:
            raise StoreError(f"Failed to store document '{document.key.path}': {e}") from e

    def delete(self, key: Key) -> None:
        try:
            with self._connection.get_session() as session:
                session.execute(delete(DocumentRecord).where(DocumentRecord.path == key.path))
                session.commit()
        except Exception as e:
            raise StoreError(f"Failed to delete document '{key.path}': {e}") from e

    def begin_transaction(self) -> SQLTransaction:
        return SQLTransaction(self, self._connection.get_session())

    # -- queries ------------------------------------------------------------

    def _property_expression(self, name: str) -> Any:
        if self._connection.is_postgresql:
            return DocumentRecord.properties[name]
        return func.json_extract(DocumentRecord.properties, _json_path(name))

    def _equals(self, name: str, value: Any) -> ColumnElement[bool]:
        if self._connection.is_postgresql:
            # @> containment compares JSON types exactly
            return DocumentRecord.properties.op("@>")(cast({name: value}, JSONB))

        path = _json_path(name)
        json_type = func.json_type(DocumentRecord.properties, path)
        extracted = func.json_extract(DocumentRecord.properties, path)
        if value is None:
            return json_type == "null"
        if isinstance(value, bool):
            return json_type == ("true" if value else "false")
        if isinstance(value, (int, float)):
            return and_(json_type.in_(("integer", "real")), extracted == value)
        if isinstance(value, str):
            return and_(json_type == "text", extracted == value)
        return extracted == func.json(json.dumps(value, separators=(",", ":")))

    def _compile_filter(
        self, query_filter: FilterPredicate | CompositeFilter
    ) -> ColumnElement[bool]:
        if isinstance(query_filter, CompositeFilter):
            return and_(*(self._equals(f.property, f.value) for f in query_filter.filters))
        return self._equals(query_filter.property, query_filter.value)

    def compile(self, query: Query) -> Any:
        """Compile a query to a SQLAlchemy select statement."""
        statement = select(DocumentRecord).where(DocumentRecord.kind == query.kind)

        if query.ancestor is not None:
            prefix = query.ancestor.path
            statement = statement.where(
                or_(
                    DocumentRecord.path == prefix,
                    DocumentRecord.path.startswith(prefix + PATH_SEPARATOR, autoescape=True),
                )
            )

        if query.filter is not None:
            statement = statement.where(self._compile_filter(query.filter))

        for clause in query.sorts:
            expression = self._property_expression(clause.property)
            if clause.direction == SortDirection.DESCENDING:
                ordering = expression.desc()
                if self._connection.is_postgresql:
                    ordering = ordering.nulls_last()
            else:
                ordering = expression.asc()
                if self._connection.is_postgresql:
                    ordering = ordering.nulls_first()
            statement = statement.order_by(ordering)
        # Key order breaks remaining ties, and is the order when no sort is given
        statement = statement.order_by(DocumentRecord.path)

        if query.offset is not None:
            statement = statement.offset(query.offset)
        if query.limit is not None:
            statement = statement.limit(query.limit)
        return statement

    def prepare(self, query: Query) -> Iterator[Document]:
        statement = self.compile(query)
        try:
            with self._connection.get_session() as session:
                documents = [self._to_document(record) for record in session.scalars(statement)]
        except Exception as e:
            raise QueryError(
                f"Failed to execute query for kind '{query.kind}': {e}",
                {"query": query.describe()},
            ) from e
        yield from documents

    def list_kinds(self) -> dict[str, int]:
        statement = (
            select(DocumentRecord.kind, func.count())
            .group_by(DocumentRecord.kind)
            .order_by(DocumentRecord.kind)
        )
        try:
            with self._connection.get_session() as session:
                return {kind: count for kind, count in session.execute(statement)}
        except Exception as e:
            raise StoreError(f"Failed to list kinds: {e}") from e

    def close(self) -> None:
        self._connection.close()
