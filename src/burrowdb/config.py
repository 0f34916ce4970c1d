"""Runtime configuration."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_DATABASE_URL = "sqlite:///./burrowdb.db"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


class BurrowConfig(BaseModel):
    """Configuration for a BurrowDB instance."""

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False  # Echo SQL statements

    # Write-through entity cache
    cache_enabled: bool = True
    cache_ttl_seconds: float | None = Field(default=None, gt=0)  # None: entries never expire

    @classmethod
    def from_env(cls) -> BurrowConfig:
        """Build a config from ``BURROWDB_*`` environment variables.

        - BURROWDB_URL: database URL
        - BURROWDB_ECHO: echo SQL (1/true/yes/on)
        - BURROWDB_CACHE: enable the entity cache (default on)
        - BURROWDB_CACHE_TTL: cache entry lifetime in seconds
        """
        ttl = os.getenv("BURROWDB_CACHE_TTL")
        return cls(
            database_url=os.getenv("BURROWDB_URL") or DEFAULT_DATABASE_URL,
            echo=_env_flag("BURROWDB_ECHO", False),
            cache_enabled=_env_flag("BURROWDB_CACHE", True),
            cache_ttl_seconds=float(ttl) if ttl else None,
        )
