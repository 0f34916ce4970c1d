"""BurrowDB - typed entities over a hierarchical document store.

Entities are pydantic models persisted as JSON property bags under
hierarchical keys. A generic manager per entity class handles reads,
writes, queries and a write-through cache.

Example:
    from burrowdb import BurrowDB, Entity

    class Customer(Entity):
        name: str = ""

    class Order(Entity):
        total: float = 0.0

    db = BurrowDB("sqlite:///./shop.db")
    customers = db.manager(Customer)
    orders = db.manager(Order)

    acme = customers.upsert(customers.from_key("acme", name="Acme"))
    orders.upsert(orders.from_parent_key(acme, total=42.0))

    # Every order stored under the customer
    print(orders.find_by_parent(acme))
"""

from burrowdb.cache import (
    CacheBackend,
    CacheProvider,
    EntityCache,
    MemoryCache,
    MemoryCacheProvider,
)
from burrowdb.config import BurrowConfig
from burrowdb.core.engine import BurrowDB
from burrowdb.core.keys import Key
from burrowdb.core.types import CompositeFilter, FilterPredicate, Query, SortClause, SortDirection
from burrowdb.exceptions import (
    BurrowDBError,
    DocumentNotFoundError,
    EntityKindMismatchError,
    FieldMappingError,
    FieldNotFoundError,
    InvalidKeyError,
    PreconditionError,
    QueryError,
    SerializationError,
    StoreError,
    TransactionFailedError,
    UnknownKindError,
)
from burrowdb.manager import EntityManager
from burrowdb.mapping import Entity, Status, setter
from burrowdb.query import QueryBuilder
from burrowdb.store import (
    Document,
    DocumentStore,
    InMemoryDocumentStore,
    SQLDocumentStore,
    Transaction,
)

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "BurrowDB",
    "BurrowConfig",
    "EntityManager",
    "Entity",
    "Status",
    "setter",
    "Key",
    # Queries
    "QueryBuilder",
    "Query",
    "FilterPredicate",
    "CompositeFilter",
    "SortClause",
    "SortDirection",
    # Stores
    "Document",
    "DocumentStore",
    "Transaction",
    "InMemoryDocumentStore",
    "SQLDocumentStore",
    # Caches
    "CacheBackend",
    "CacheProvider",
    "EntityCache",
    "MemoryCache",
    "MemoryCacheProvider",
    # Exceptions
    "BurrowDBError",
    "DocumentNotFoundError",
    "EntityKindMismatchError",
    "FieldMappingError",
    "FieldNotFoundError",
    "InvalidKeyError",
    "PreconditionError",
    "QueryError",
    "SerializationError",
    "StoreError",
    "TransactionFailedError",
    "UnknownKindError",
]
