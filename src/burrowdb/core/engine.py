"""Main BurrowDB facade."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from burrowdb.cache.base import CacheProvider, MemoryCacheProvider
from burrowdb.cache.entity_cache import EntityCache
from burrowdb.config import BurrowConfig
from burrowdb.manager import EntityManager
from burrowdb.mapping.entity import Entity
from burrowdb.store.base import DocumentStore
from burrowdb.store.sql import SQLDocumentStore

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)


class BurrowDB:
    """Owns a document store and a cache, and hands out entity managers.

    Example:
        db = BurrowDB("sqlite:///./app.db")
        customers = db.manager(Customer)
        acme = customers.upsert(customers.from_key("acme", name="Acme"))
        assert customers.get(acme.object_key) == acme
    """

    def __init__(
        self,
        url: str | None = None,
        echo: bool = False,
        *,
        config: BurrowConfig | None = None,
        store: DocumentStore | None = None,
        cache_provider: CacheProvider | None = None,
    ) -> None:
        """Initialize BurrowDB.

        Args:
            url: Database URL; overrides ``config.database_url``
            echo: Whether to echo SQL statements (for debugging)
            config: Full configuration; defaults to ``BurrowConfig.from_env()``
            store: Use this store instead of opening one from the URL
            cache_provider: Use this cache instead of the in-memory one
        """
        config = config or BurrowConfig.from_env()
        if url is not None or echo:
            config = config.model_copy(
                update={"database_url": url or config.database_url, "echo": echo or config.echo}
            )
        self.config = config

        if store is None:
            sql_store = SQLDocumentStore(config.database_url, echo=config.echo)
            sql_store.initialize()
            store = sql_store
        self._store = store

        if cache_provider is None and config.cache_enabled:
            cache_provider = MemoryCacheProvider(ttl_seconds=config.cache_ttl_seconds)
        self._cache_provider = cache_provider
        self._managers: dict[type[Entity], EntityManager[Any]] = {}

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def cache_provider(self) -> CacheProvider | None:
        return self._cache_provider

    def manager(self, entity_class: type[T]) -> EntityManager[T]:
        """Get the (shared) manager for an entity class."""
        manager = self._managers.get(entity_class)
        if manager is None:
            cache = None
            if self._cache_provider is not None:
                backend = self._cache_provider.for_kind(entity_class.kind())
                cache = EntityCache(entity_class, backend)
            manager = EntityManager(entity_class, self._store, cache)
            self._managers[entity_class] = manager
            logger.debug(f"Created manager for {entity_class.kind()} (cached={cache is not None})")
        return manager

    def kinds(self) -> dict[str, int]:
        """Return ``{kind: document_count}`` for every stored kind."""
        return self._store.list_kinds()

    def close(self) -> None:
        """Close the store."""
        self._store.close()

    def __enter__(self) -> BurrowDB:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
