"""Generic entity manager.

One :class:`EntityManager` serves one entity class. It derives keys, runs
reads and writes against the document store, builds and executes queries,
and keeps an optional write-through cache in step with the store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any, Generic, TypeVar

from burrowdb.cache.entity_cache import EntityCache
from burrowdb.core.keys import Key
from burrowdb.core.types import Query, SortDirection
from burrowdb.exceptions import (
    DocumentNotFoundError,
    EntityKindMismatchError,
    PreconditionError,
    StoreError,
    TransactionFailedError,
)
from burrowdb.mapping.entity import Entity, key_of
from burrowdb.query.builder import QueryBuilder
from burrowdb.store.base import DocumentStore, Transaction
from burrowdb.store.document import Document

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)

KeyLike = Key | str
ParentLike = Entity | Key | str


class EntityManager(Generic[T]):
    """Repository for one entity class.

    Holds no per-entity state, so one instance per kind can be shared.
    """

    def __init__(
        self,
        entity_class: type[T],
        store: DocumentStore,
        cache: EntityCache[T] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            entity_class: Entity class this manager reads and writes
            store: Document store (system of record)
            cache: Optional write-through cache; None disables caching
        """
        self.entity_class = entity_class
        self._store = store
        self._cache = cache

    @property
    def kind(self) -> str:
        return self.entity_class.kind()

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def cache(self) -> EntityCache[T] | None:
        return self._cache

    @property
    def caching_enabled(self) -> bool:
        return self._cache is not None

    def _check_kind(self, kind: str) -> None:
        if kind != self.kind:
            raise EntityKindMismatchError(self.kind, kind)

    def _check_entity(self, entity: Any) -> T:
        if entity is None:
            raise PreconditionError(f"Expected a {self.kind} entity, got None")
        if not isinstance(entity, self.entity_class):
            actual = entity.kind() if isinstance(entity, Entity) else type(entity).__name__
            raise EntityKindMismatchError(self.kind, actual)
        return entity

    # -- reads and writes ---------------------------------------------------

    def get(self, key: KeyLike) -> T | None:
        """Load an entity by key.

        Args:
            key: Key or URL-safe key string

        Returns:
            The entity, or None if nothing is stored under the key

        Raises:
            InvalidKeyError: If the key string is malformed
            EntityKindMismatchError: If the key belongs to another kind
        """
        resolved = Key.coerce(key)
        self._check_kind(resolved.kind)

        if self._cache is not None:
            cached = self._cache.load(resolved.urlsafe())
            if cached is not None:
                return cached

        try:
            document = self._store.get(resolved)
        except DocumentNotFoundError:
            logger.debug(f"No {self.kind} stored at {resolved.path}")
            return None

        entity = self.entity_class.from_document(document)
        if self._cache is not None:
            self._cache.store(entity)
        return entity

    def exists(self, key: KeyLike) -> bool:
        """Check the store (never the cache) for a key."""
        resolved = Key.coerce(key)
        self._check_kind(resolved.kind)
        return self._store.exists(resolved)

    def upsert(self, entity: T) -> T:
        """Insert or update an entity.

        An entity without a backing document (a cache hit, or one built with
        the class constructor) is bound first: to the stored document when
        one exists, otherwise to a new empty one.

        Returns:
            The same entity, now bound and persisted

        Raises:
            PreconditionError: If entity is None
            EntityKindMismatchError: If entity is not of this manager's kind
        """
        entity = self._check_entity(entity)
        key = entity.get_key()
        self._check_kind(key.kind)

        document = entity.document
        if document is None:
            try:
                document = self._store.get(key)
            except DocumentNotFoundError:
                document = Document(key)
            entity.bind(document)

        entity.write()
        self._store.put(document)

        if self._cache is not None:
            self._cache.store(entity)
        return entity

    def delete(self, target: T | KeyLike) -> T | None:
        """Delete an entity or the entity stored under a key.

        The existence check and the delete run in one store transaction.

        Returns:
            The deleted entity, or None if nothing was stored

        Raises:
            TransactionFailedError: If the store fails during the transaction
        """
        if target is None:
            raise PreconditionError(f"Expected a {self.kind} entity or key, got None")
        if isinstance(target, Entity):
            entity: T | None = self._check_entity(target)
        else:
            entity = self.get(target)
        if entity is None:
            return None

        key = entity.get_key()
        transaction: Transaction | None = None
        try:
            transaction = self._store.begin_transaction()
            try:
                transaction.get(key)
            except DocumentNotFoundError:
                logger.debug(f"Nothing to delete at {key.path}")
                return None
            transaction.delete(key)
            transaction.commit()
        except StoreError as e:
            logger.error(f"Failed to delete {self.kind} {key.path}: {e.message}")
            raise TransactionFailedError("delete", key.path, e.message) from e
        finally:
            if transaction is not None and transaction.is_active:
                transaction.rollback()

        if self._cache is not None:
            self._cache.evict(key.urlsafe())
        logger.info(f"Deleted {self.kind} {key.path}")
        return entity

    # -- queries ------------------------------------------------------------

    def query(self, ancestor: ParentLike | None = None) -> QueryBuilder:
        """Start a query for this kind, optionally scoped under an ancestor."""
        return QueryBuilder(self.kind, ancestor=key_of(ancestor) if ancestor is not None else None)

    def _property_and_value(self, name: str, value: Any) -> tuple[str, Any]:
        descriptor = self.entity_class.field_table().get(name)
        if descriptor is None:
            logger.debug(f"Filtering {self.kind} on undeclared property '{name}'")
            return name, value
        return descriptor.property_name, descriptor.codec.encode(value)

    def with_filters(self, query: QueryBuilder, values: Mapping[str, Any]) -> QueryBuilder:
        """Add one equality filter per entry, encoding values as they are stored."""
        for name, value in values.items():
            property_name, encoded = self._property_and_value(name, value)
            query.filter(property_name, encoded)
        return query

    def with_sort(
        self, query: QueryBuilder, sorts: Mapping[str, SortDirection | str]
    ) -> QueryBuilder:
        """Append sort clauses in mapping order."""
        table = self.entity_class.field_table()
        for name, direction in sorts.items():
            descriptor = table.get(name)
            query.sort(descriptor.property_name if descriptor else name, direction)
        return query

    def _build(self, query: QueryBuilder | Query) -> Query:
        built = query.build() if isinstance(query, QueryBuilder) else query
        self._check_kind(built.kind)
        return built

    def iter_entities(self, query: QueryBuilder | Query) -> Iterator[T]:
        """Run a query, hydrating entities one at a time in store order."""
        for document in self._store.prepare(self._build(query)):
            yield self.entity_class.from_document(document)

    def query_entities(self, query: QueryBuilder | Query) -> list[T]:
        """Run a query and return all matching entities in store order."""
        return list(self.iter_entities(query))

    def count(self, query: QueryBuilder | Query | None = None) -> int:
        built = self._build(query if query is not None else self.query())
        return sum(1 for _ in self._store.prepare(built))

    # -- finders ------------------------------------------------------------

    def find(
        self,
        parent: ParentLike | None = None,
        values: Mapping[str, Any] | None = None,
        sort: Mapping[str, SortDirection | str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[T]:
        """Query by ancestor, field values and sort order in one call."""
        query = self.query(ancestor=parent)
        if values:
            self.with_filters(query, values)
        if sort:
            self.with_sort(query, sort)
        query.limit(limit).offset(offset)
        return self.query_entities(query)

    def _first(self, query: QueryBuilder) -> T | None:
        for entity in self.iter_entities(query.limit(1)):
            return entity
        return None

    def find_all(self) -> list[T]:
        return self.query_entities(self.query())

    def find_by_parent(self, parent: ParentLike) -> list[T]:
        return self.query_entities(self.query(ancestor=parent))

    def find_first_by_parent(self, parent: ParentLike) -> T | None:
        return self._first(self.query(ancestor=parent))

    def find_by_value(self, field: str, value: Any) -> list[T]:
        return self.find_by_values({field: value})

    def find_by_values(self, values: Mapping[str, Any]) -> list[T]:
        return self.query_entities(self.with_filters(self.query(), values))

    def find_first_by_value(self, field: str, value: Any) -> T | None:
        return self._first(self.with_filters(self.query(), {field: value}))

    def find_by_parent_and_value(self, parent: ParentLike, field: str, value: Any) -> list[T]:
        return self.query_entities(self.with_filters(self.query(ancestor=parent), {field: value}))

    # -- factories ----------------------------------------------------------

    def new_entity(self, **fields: Any) -> T:
        """Build a new entity with a fresh random key. Nothing is stored."""
        return self.entity_class.create(**fields)

    def from_key(self, key_name: str, /, **fields: Any) -> T:
        """Build a new entity with an explicit key name. Nothing is stored."""
        return self.entity_class.create(key_name, **fields)

    def from_parent_key(self, parent_key: ParentLike, /, **fields: Any) -> T:
        """Build a new child entity with a fresh key name under ``parent_key``."""
        return self.entity_class.create(parent_key=parent_key, **fields)

    def from_parent_with_key(
        self, parent_key: ParentLike, key_name: str, /, **fields: Any
    ) -> T:
        """Build a new child entity with an explicit key name under ``parent_key``."""
        return self.entity_class.create(key_name, parent_key=parent_key, **fields)

    def from_document(self, document: Document) -> T:
        """Build an entity bound to an existing document."""
        self._check_kind(document.kind)
        return self.entity_class.from_document(document)

    def __repr__(self) -> str:
        return f"EntityManager({self.kind!r}, cached={self.caching_enabled})"
