"""Shared test fixtures for BurrowDB."""

import os
from collections.abc import Generator

import pytest

from burrowdb import (
    BurrowConfig,
    BurrowDB,
    InMemoryDocumentStore,
    MemoryCacheProvider,
    SQLDocumentStore,
)


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


def _postgresql_connectable(url: str) -> bool:
    """Check if we can connect to PostgreSQL."""
    if not _psycopg_available():
        return False
    try:
        from burrowdb.core.connection import DatabaseConnection

        conn = DatabaseConnection(url)
        result = conn.test_connection()
        conn.close()
        return result
    except Exception:
        return False


@pytest.fixture
def postgresql_url() -> str:
    """Get PostgreSQL URL from environment or use default.

    Skips the requesting test when psycopg or the server is unavailable.
    """
    url = os.environ.get("TEST_DATABASE_URL")
    if not url:
        # Default to local PostgreSQL
        url = "postgresql://localhost/burrowdb_test"

    # Skip if psycopg not available
    if not _psycopg_available():
        pytest.skip("psycopg not installed")

    # Skip if can't connect (no PostgreSQL server)
    if not _postgresql_connectable(url):
        pytest.skip(f"Cannot connect to PostgreSQL at {url}")

    return url


@pytest.fixture
def sqlite_store() -> Generator[SQLDocumentStore, None, None]:
    """SQL document store on SQLite in-memory."""
    store = SQLDocumentStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    """Document store held in process memory."""
    return InMemoryDocumentStore()


@pytest.fixture(params=["sqlite", "memory"])
def store(
    request: pytest.FixtureRequest,
) -> Generator[SQLDocumentStore | InMemoryDocumentStore, None, None]:
    """Run a test against every store adapter that needs no server."""
    if request.param == "sqlite":
        sql_store = SQLDocumentStore("sqlite:///:memory:")
        yield sql_store
        sql_store.close()
    else:
        yield InMemoryDocumentStore()


@pytest.fixture
def pg_store(postgresql_url: str) -> Generator[SQLDocumentStore, None, None]:
    """SQL document store on PostgreSQL.

    The postgresql_url fixture handles skipping when PostgreSQL isn't available.
    """
    store = SQLDocumentStore(postgresql_url)
    yield store
    # Cleanup - drop the document table
    from burrowdb.store.models import DocumentRecord

    DocumentRecord.__table__.drop(store.connection.engine, checkfirst=True)
    store.close()


@pytest.fixture
def cache_provider() -> MemoryCacheProvider:
    """In-memory cache provider without expiry."""
    return MemoryCacheProvider()


@pytest.fixture
def db() -> Generator[BurrowDB, None, None]:
    """BurrowDB on SQLite in-memory with the entity cache enabled."""
    database = BurrowDB(config=BurrowConfig(database_url="sqlite:///:memory:"))
    yield database
    database.close()


@pytest.fixture
def uncached_db() -> Generator[BurrowDB, None, None]:
    """BurrowDB on SQLite in-memory with the entity cache disabled."""
    database = BurrowDB(config=BurrowConfig(database_url="sqlite:///:memory:", cache_enabled=False))
    yield database
    database.close()

