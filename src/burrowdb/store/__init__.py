"""Document store adapters."""

from burrowdb.store.base import DocumentStore, Transaction
from burrowdb.store.document import Document
from burrowdb.store.memory import InMemoryDocumentStore
from burrowdb.store.sql import SQLDocumentStore

__all__ = [
    "Document",
    "DocumentStore",
    "Transaction",
    "InMemoryDocumentStore",
    "SQLDocumentStore",
]
