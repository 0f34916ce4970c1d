"""Cache backend interfaces and the in-memory implementation.

A cache is never authoritative: entries may be missing, expired or stale,
and every miss falls back to the store.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Any


class CacheBackend(ABC):
    """Key-value cache for one kind."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Get a value, or None on a miss."""

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Set a value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a value. Removing a missing key is a no-op."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every value."""


class CacheProvider(ABC):
    """Hands out one cache namespace per entity kind."""

    @abstractmethod
    def for_kind(self, kind: str) -> CacheBackend:
        """Get the cache namespace for a kind."""


class MemoryCache(CacheBackend):
    """Thread-safe dict cache with optional time-to-live."""

    def __init__(self, namespace: str = "", ttl_seconds: float | None = None) -> None:
        """Initialize the cache.

        Args:
            namespace: Name of the namespace (usually the entity kind)
            ttl_seconds: Entry lifetime; None keeps entries until replaced or deleted
        """
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._data: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._data[key]
                return None
            return value

    def put(self, key: str, value: Any) -> None:
        expires_at = None
        if self.ttl_seconds is not None:
            expires_at = time.monotonic() + self.ttl_seconds
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        return len(self._data)


class MemoryCacheProvider(CacheProvider):
    """Creates and remembers one MemoryCache per kind."""

    def __init__(self, ttl_seconds: float | None = None) -> None:
        self.ttl_seconds = ttl_seconds
        self._namespaces: dict[str, MemoryCache] = {}
        self._lock = threading.Lock()

    def for_kind(self, kind: str) -> MemoryCache:
        with self._lock:
            cache = self._namespaces.get(kind)
            if cache is None:
                cache = MemoryCache(namespace=kind, ttl_seconds=self.ttl_seconds)
                self._namespaces[kind] = cache
            return cache

    def clear(self) -> None:
        with self._lock:
            for cache in self._namespaces.values():
                cache.clear()
