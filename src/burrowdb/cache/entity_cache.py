"""Typed cache glue used by the entity manager.

Entities are cached as their JSON transport text, keyed by ``object_key``.
A cache hit therefore always yields a fresh, unbound copy of the entity.
"""

from __future__ import annotations

import logging
from typing import Generic, TypeVar

from burrowdb.cache.base import CacheBackend
from burrowdb.exceptions import SerializationError
from burrowdb.mapping import serialization
from burrowdb.mapping.entity import Entity

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)


class EntityCache(Generic[T]):
    """Reads and writes entities of one class through a cache backend."""

    def __init__(self, entity_class: type[T], backend: CacheBackend) -> None:
        self.entity_class = entity_class
        self.backend = backend

    def load(self, object_key: str) -> T | None:
        """Get a cached entity, or None on a miss.

        A cache entry that cannot be deserialized is evicted and treated as
        a miss.
        """
        text = self.backend.get(object_key)
        if text is None:
            logger.debug(f"Cache miss for {self.entity_class.kind()} {object_key}")
            return None
        try:
            entity = serialization.loads(text, self.entity_class)
        except SerializationError as e:
            logger.warning(
                f"Evicting corrupt cache entry for {self.entity_class.kind()} {object_key}: "
                f"{e.message}"
            )
            self.backend.delete(object_key)
            return None
        logger.debug(f"Cache hit for {self.entity_class.kind()} {object_key}")
        return entity

    def store(self, entity: T) -> None:
        if not entity.object_key:
            return
        self.backend.put(entity.object_key, serialization.dumps(entity))

    def evict(self, object_key: str) -> None:
        if object_key:
            self.backend.delete(object_key)

    def clear(self) -> None:
        self.backend.clear()
