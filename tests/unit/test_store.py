"""Tests for the document store adapters (SQLite and in-memory)."""

import pytest

from burrowdb.core.keys import Key
from burrowdb.core.types import (
    CompositeFilter,
    FilterPredicate,
    Query,
    SortClause,
    SortDirection,
)
from burrowdb.exceptions import DocumentNotFoundError, StoreError
from burrowdb.store import Document, SQLDocumentStore
from burrowdb.store.models import DocumentRecord

ACME = Key("Customer", "acme")
GLOBEX = Key("Customer", "globex")


def _order(number, parent=ACME, **properties):
    return Document(Key("Order", id=number, parent=parent), {"number": number, **properties})


def _paths(documents):
    return [d.key.path for d in documents]


@pytest.fixture
def orders(store):
    """Store holding two customers and five orders."""
    store.put(Document(ACME, {"name": "Acme"}))
    store.put(Document(GLOBEX, {"name": "Globex"}))
    store.put(_order(1, state="open", total=10.0, rush=True))
    store.put(_order(2, state="closed", total=25.5, rush=False))
    store.put(_order(3, state="open", total=25.5, rush=1))
    store.put(_order(4, parent=GLOBEX, state="open", total=None))
    store.put(_order(5, parent=GLOBEX, state="open"))
    return store


class TestCrud:
    """Tests for get/put/delete."""

    def test_put_and_get(self, store):
        """A stored document comes back equal."""
        doc = Document(ACME, {"name": "Acme", "tags": ["a", "b"], "meta": {"x": 1}})
        assert store.put(doc) == ACME
        assert store.get(ACME) == doc

    def test_get_missing(self, store):
        """A missing key raises DocumentNotFoundError."""
        with pytest.raises(DocumentNotFoundError):
            store.get(ACME)
        assert store.exists(ACME) is False

    def test_put_replaces(self, store):
        """put overwrites all properties."""
        store.put(Document(ACME, {"name": "Acme", "old": 1}))
        store.put(Document(ACME, {"name": "Acme Corp"}))
        assert store.get(ACME).properties == {"name": "Acme Corp"}

    def test_returned_documents_are_copies(self, store):
        """Mutating a loaded document does not change the store."""
        store.put(Document(ACME, {"tags": ["a"]}))
        loaded = store.get(ACME)
        loaded.get_property("tags").append("b")
        loaded.set_property("name", "x")
        assert store.get(ACME).properties == {"tags": ["a"]}

    def test_delete(self, store):
        """delete removes the document; deleting again is a no-op."""
        store.put(Document(ACME, {}))
        store.delete(ACME)
        assert not store.exists(ACME)
        store.delete(ACME)

    def test_delete_keeps_children(self, orders):
        """Deleting a parent leaves its descendants."""
        orders.delete(ACME)
        assert orders.exists(Key("Order", id=1, parent=ACME))

    def test_list_kinds(self, orders):
        """list_kinds counts documents per kind."""
        assert orders.list_kinds() == {"Customer": 2, "Order": 5}


class TestTransactions:
    """Tests for store transactions."""

    def test_commit(self, store):
        """Committed writes are visible."""
        store.put(Document(ACME, {"name": "Acme"}))
        with store.begin_transaction() as txn:
            assert txn.get(ACME).get_property("name") == "Acme"
            txn.delete(ACME)
            txn.put(Document(GLOBEX, {"name": "Globex"}))
        assert not txn.is_active
        assert not store.exists(ACME)
        assert store.exists(GLOBEX)

    def test_rollback(self, store):
        """Rolled back writes are discarded."""
        store.put(Document(ACME, {"name": "Acme"}))
        txn = store.begin_transaction()
        txn.delete(ACME)
        txn.rollback()
        assert not txn.is_active
        assert store.exists(ACME)

    def test_exception_rolls_back(self, store):
        """Leaving the block with an exception rolls back."""
        store.put(Document(ACME, {"name": "Acme"}))
        with pytest.raises(RuntimeError):
            with store.begin_transaction() as txn:
                txn.delete(ACME)
                raise RuntimeError("boom")
        assert store.exists(ACME)

    def test_get_missing_in_transaction(self, store):
        """Transactional reads raise DocumentNotFoundError for missing keys."""
        with store.begin_transaction() as txn:
            with pytest.raises(DocumentNotFoundError):
                txn.get(ACME)

    def test_finished_transaction_rejects_use(self, store):
        """A committed transaction cannot be reused."""
        txn = store.begin_transaction()
        txn.commit()
        with pytest.raises(StoreError):
            txn.put(Document(ACME, {}))


class TestQueries:
    """Tests for query execution."""

    def test_kind_only(self, orders):
        """Without sorts, documents come back in key path order."""
        result = list(orders.prepare(Query(kind="Order")))
        assert _paths(result) == [
            "Customer:acme/Order:#1",
            "Customer:acme/Order:#2",
            "Customer:acme/Order:#3",
            "Customer:globex/Order:#4",
            "Customer:globex/Order:#5",
        ]

    def test_ancestor_scope(self, orders):
        """Ancestor scoping returns only descendants."""
        result = list(orders.prepare(Query(kind="Order", ancestor=GLOBEX)))
        assert [d.get_property("number") for d in result] == [4, 5]

    def test_ancestor_scope_is_exact(self, orders):
        """A sibling whose name shares a prefix is not in scope."""
        sibling = Key("Customer", "acme-west")
        orders.put(_order(9, parent=sibling))
        result = list(orders.prepare(Query(kind="Order", ancestor=ACME)))
        assert [d.get_property("number") for d in result] == [1, 2, 3]

    def test_single_filter(self, orders):
        """A single predicate filters by equality."""
        query = Query(kind="Order", filter=FilterPredicate(property="state", value="closed"))
        assert [d.get_property("number") for d in orders.prepare(query)] == [2]

    def test_composite_filter(self, orders):
        """Composite filters AND their predicates."""
        query = Query(
            kind="Order",
            filter=CompositeFilter(
                filters=[
                    FilterPredicate(property="state", value="open"),
                    FilterPredicate(property="total", value=25.5),
                ]
            ),
        )
        assert [d.get_property("number") for d in orders.prepare(query)] == [3]

    def test_bool_and_int_do_not_match(self, orders):
        """True and 1 are different values."""
        query = Query(kind="Order", filter=FilterPredicate(property="rush", value=True))
        assert [d.get_property("number") for d in orders.prepare(query)] == [1]
        query = Query(kind="Order", filter=FilterPredicate(property="rush", value=1))
        assert [d.get_property("number") for d in orders.prepare(query)] == [3]

    def test_null_filter(self, orders):
        """A None filter matches stored nulls, not missing properties."""
        query = Query(kind="Order", filter=FilterPredicate(property="total", value=None))
        assert [d.get_property("number") for d in orders.prepare(query)] == [4]

    def test_sort_with_tie_breaker(self, orders):
        """Later sort clauses break ties of earlier ones."""
        query = Query(
            kind="Order",
            filter=FilterPredicate(property="state", value="open"),
            sorts=[
                SortClause(property="state", direction=SortDirection.ASCENDING),
                SortClause(property="number", direction=SortDirection.DESCENDING),
            ],
        )
        assert [d.get_property("number") for d in orders.prepare(query)] == [5, 4, 3, 1]

    def test_missing_values_sort_first_ascending(self, orders):
        """Null or missing sort values come first ascending, last descending."""
        ascending = Query(kind="Order", sorts=[SortClause(property="total")])
        assert [d.get_property("number") for d in orders.prepare(ascending)] == [4, 5, 1, 2, 3]

        descending = Query(
            kind="Order",
            sorts=[SortClause(property="total", direction=SortDirection.DESCENDING)],
        )
        assert [d.get_property("number") for d in orders.prepare(descending)] == [2, 3, 1, 4, 5]

    def test_limit_and_offset(self, orders):
        """limit and offset page through ordered results."""
        query = Query(kind="Order", sorts=[SortClause(property="number")], limit=2, offset=1)
        assert [d.get_property("number") for d in orders.prepare(query)] == [2, 3]

    def test_no_matches(self, orders):
        """An unknown kind matches nothing."""
        assert list(orders.prepare(Query(kind="Invoice"))) == []


class TestSQLStore:
    """Tests specific to the SQL store."""

    def test_sqlite_dialect(self, sqlite_store):
        """The SQLite store reports its dialect."""
        assert sqlite_store.connection.is_sqlite

    def test_initialize_is_idempotent(self, sqlite_store):
        """initialize can run more than once."""
        sqlite_store.initialize()
        sqlite_store.put(Document(ACME, {}))
        sqlite_store.initialize()
        assert sqlite_store.exists(ACME)

    def test_property_names_with_quotes(self, sqlite_store):
        """Property names are quoted inside JSON paths."""
        sqlite_store.put(Document(ACME, {"a.b": 1, "$_nested": "x"}))
        query = Query(kind="Customer", filter=FilterPredicate(property="a.b", value=1))
        assert len(list(sqlite_store.prepare(query))) == 1
        query = Query(kind="Customer", filter=FilterPredicate(property="$_nested", value="x"))
        assert len(list(sqlite_store.prepare(query))) == 1

    def test_structured_filter_values(self, sqlite_store):
        """Lists and dicts compare as JSON."""
        sqlite_store.put(Document(ACME, {"tags": ["a", "b"]}))
        query = Query(kind="Customer", filter=FilterPredicate(property="tags", value=["a", "b"]))
        assert len(list(sqlite_store.prepare(query))) == 1

    def test_transaction_wraps_driver_errors(self, sqlite_store):
        """Failures inside a transaction surface as StoreError, never raw driver errors."""
        sqlite_store.put(Document(ACME, {}))
        DocumentRecord.__table__.drop(sqlite_store.connection.engine)

        transaction = sqlite_store.begin_transaction()
        with pytest.raises(StoreError, match="Failed to load document"):
            transaction.get(ACME)
        with pytest.raises(StoreError, match="Failed to delete document"):
            transaction.delete(ACME)
        transaction.rollback()
        assert not transaction.is_active


class TestPostgreSQLStore:
    """Query semantics on PostgreSQL JSONB (skipped without a server)."""

    def test_filters_and_sorts(self, pg_store):
        """Equality and ordering match the other stores."""
        pg_store.put(_order(1, state="open", total=10.0, rush=True))
        pg_store.put(_order(2, state="open", total=None, rush=1))
        pg_store.put(_order(3, state="closed", total=5.0))

        query = Query(kind="Order", filter=FilterPredicate(property="rush", value=True))
        assert [d.get_property("number") for d in pg_store.prepare(query)] == [1]

        query = Query(kind="Order", sorts=[SortClause(property="total")])
        assert [d.get_property("number") for d in pg_store.prepare(query)] == [2, 3, 1]

    def test_store_type(self, pg_store):
        """The fixture is a PostgreSQL SQL store."""
        assert isinstance(pg_store, SQLDocumentStore)
        assert pg_store.connection.is_postgresql
