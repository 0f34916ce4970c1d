"""Tests for the generic entity manager."""

from datetime import datetime
from enum import Enum

import pytest
from sqlalchemy import text

from burrowdb import (
    BurrowDB,
    EntityManager,
    InMemoryDocumentStore,
    MemoryCache,
)
from burrowdb.cache import EntityCache
from burrowdb.core.keys import Key
from burrowdb.exceptions import (
    EntityKindMismatchError,
    InvalidKeyError,
    PreconditionError,
    StoreError,
    TransactionFailedError,
)
from burrowdb.mapping import Entity, Status
from burrowdb.store import Document, SQLDocumentStore
from burrowdb.store.models import DocumentRecord


class Plan(Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class Address(Entity):
    street: str = ""
    city: str = ""


class Account(Entity):
    name: str = ""
    plan: Plan = Plan.FREE
    seats: int = 1
    opened_at: datetime | None = None
    address: Address | None = None


class Invoice(Entity):
    number: int = 0
    state: str = "draft"
    amount: float = 0.0


class Contact(Entity):
    name: str = ""
    id: int = 0
    parent: str = ""


@pytest.fixture(params=["cached", "uncached"])
def accounts(request, store) -> EntityManager[Account]:
    """Account manager over every store, with and without a cache."""
    cache = None
    if request.param == "cached":
        cache = EntityCache(Account, MemoryCache("Account"))
    return EntityManager(Account, store, cache)


@pytest.fixture
def invoices(store) -> EntityManager[Invoice]:
    """Uncached invoice manager sharing the store."""
    return EntityManager(Invoice, store)


def _seed(accounts, invoices):
    acme = accounts.upsert(accounts.from_key("acme", name="Acme", plan=Plan.PRO))
    globex = accounts.upsert(accounts.from_key("globex", name="Globex"))
    for number, state, amount in [(1, "paid", 10.0), (2, "open", 30.0), (3, "open", 20.0)]:
        invoice = invoices.from_parent_with_key(
            acme, f"inv-{number}", number=number, state=state, amount=amount
        )
        invoices.upsert(invoice)
    invoices.upsert(
        invoices.from_parent_with_key(globex, "inv-9", number=9, state="open", amount=5.0)
    )
    return acme, globex


class TestFactories:
    """Tests for entity factories."""

    def test_new_entity(self, accounts):
        """new_entity assigns a fresh random key."""
        first = accounts.new_entity(name="A")
        second = accounts.new_entity(name="B")
        assert first.get_key().kind == "Account"
        assert first.get_key() != second.get_key()
        assert first.is_bound

    def test_from_key(self, accounts):
        """from_key uses the given name."""
        account = accounts.from_key("acme", name="Acme")
        assert account.get_key() == Key("Account", "acme")
        assert account.name == "Acme"

    def test_from_parent_key(self, accounts, invoices):
        """Child factories put the key under the parent."""
        acme = accounts.from_key("acme")
        child = invoices.from_parent_key(acme, number=1)
        assert child.get_parent_key() == acme.get_key()
        named = invoices.from_parent_with_key(acme.get_key(), "inv-1")
        assert named.get_key() == Key("Invoice", "inv-1", parent=acme.get_key())

    def test_field_names_shared_with_key_arguments(self, store):
        """Entities may declare name, id and parent fields and still use every factory."""
        contacts = EntityManager(Contact, store)
        acme = Key("Account", "acme")
        built = [
            contacts.new_entity(name="Ann", id=1, parent="Bob"),
            contacts.from_key("ann", name="Ann", id=1, parent="Bob"),
            contacts.from_parent_key(acme, name="Ann", id=1, parent="Bob"),
            contacts.from_parent_with_key(acme, "ann", name="Ann", id=1, parent="Bob"),
        ]
        for contact in built:
            assert (contact.name, contact.id, contact.parent) == ("Ann", 1, "Bob")
        assert built[1].get_key() == Key("Contact", "ann")
        assert built[3].get_key() == Key("Contact", "ann", parent=acme)

        contacts.upsert(built[3])
        loaded = contacts.find_first_by_value("parent", "Bob")
        assert loaded.get_key() == built[3].get_key()
        assert loaded.id == 1

    def test_from_document(self, accounts):
        """from_document hydrates and binds."""
        doc = Document(Key("Account", "acme"), {"name": "Acme", "plan": 2})
        account = accounts.from_document(doc)
        assert account.plan is Plan.ENTERPRISE
        assert account.document is doc

    def test_from_document_wrong_kind(self, accounts):
        """Documents of another kind are refused."""
        with pytest.raises(EntityKindMismatchError):
            accounts.from_document(Document(Key("Invoice", "x")))

    def test_factories_do_not_store(self, accounts):
        """Factories never touch the store or the cache."""
        account = accounts.from_key("acme")
        assert accounts.get(account.object_key) is None
        assert not accounts.exists(account.get_key())


class TestUpsertAndGet:
    """Tests for upsert and get."""

    def test_round_trip(self, accounts):
        """upsert then get returns an equal entity."""
        account = accounts.from_key(
            "acme",
            name="Acme",
            plan=Plan.ENTERPRISE,
            seats=12,
            opened_at=datetime(2022, 6, 1, 9, 0),
            address=Address.create("hq", street="1 Main St", city="Springfield"),
        )
        account.activate()
        assert accounts.upsert(account) is account

        loaded = accounts.get(account.object_key)
        assert loaded == account
        assert loaded.get_key() == account.get_key()
        assert loaded.address.get_key() == Key("Address", "hq")
        assert loaded.status is Status.ACTIVE

    def test_get_by_key_object(self, accounts):
        """get accepts Key objects."""
        account = accounts.upsert(accounts.from_key("acme"))
        assert accounts.get(Key("Account", "acme")) == account

    def test_enum_stored_as_ordinal(self, accounts):
        """Enums reach the store as ordinals."""
        accounts.upsert(accounts.from_key("acme", plan=Plan.PRO))
        stored = accounts.store.get(Key("Account", "acme"))
        assert stored.get_property("plan") == 1
        assert stored.has_property("$_address")
        assert stored.get_property("$_address") is None

    def test_update(self, accounts):
        """A second upsert updates the stored document."""
        account = accounts.upsert(accounts.from_key("acme", seats=1))
        account.seats = 5
        accounts.upsert(account)
        assert accounts.get(account.object_key).seats == 5
        assert accounts.store.get(account.get_key()).get_property("seats") == 5

    def test_missing(self, accounts):
        """Missing keys return None."""
        assert accounts.get(Key("Account", "nobody")) is None

    def test_invalid_key(self, accounts):
        """Malformed key strings raise InvalidKeyError."""
        with pytest.raises(InvalidKeyError):
            accounts.get("not a key!")

    def test_key_of_other_kind(self, accounts):
        """Keys of another kind are refused."""
        with pytest.raises(EntityKindMismatchError):
            accounts.get(Key("Invoice", "x"))

    def test_upsert_preconditions(self, accounts, invoices):
        """None and foreign entities are programmer errors."""
        with pytest.raises(PreconditionError):
            accounts.upsert(None)
        with pytest.raises(EntityKindMismatchError):
            accounts.upsert(invoices.from_key("x"))

    def test_upsert_unbound_entity(self, accounts):
        """An entity built with the constructor is bound on upsert."""
        account = Account(object_key=Key("Account", "acme").urlsafe(), name="Acme")
        accounts.upsert(account)
        assert account.is_bound
        assert accounts.get(account.object_key).name == "Acme"

    def test_upsert_unbound_keeps_unknown_properties(self, accounts):
        """Lazy binding reuses the stored document."""
        key = Key("Account", "acme")
        accounts.store.put(Document(key, {"name": "Old", "legacy": True}))
        account = Account(object_key=key.urlsafe(), name="New")
        accounts.upsert(account)
        stored = accounts.store.get(key)
        assert stored.get_property("name") == "New"
        assert stored.get_property("legacy") is True

    def test_key_is_stable(self, accounts):
        """The key survives upsert, hydrate and cache round trips."""
        account = accounts.from_key("acme")
        key = account.get_key()
        accounts.upsert(account)
        first = accounts.get(key)
        first.seats = 3
        accounts.upsert(first)
        assert accounts.get(key).get_key() == key
        assert accounts.get(key).seats == 3


class TestCaching:
    """Cache behaviour of the manager."""

    def _manager(self, store):
        backend = MemoryCache("Account")
        return EntityManager(Account, store, EntityCache(Account, backend)), backend

    def test_upsert_writes_through(self, memory_store):
        """upsert fills the cache."""
        accounts, backend = self._manager(memory_store)
        account = accounts.upsert(accounts.from_key("acme", name="Acme"))
        assert account.object_key in backend

    def test_get_prefers_cache(self, memory_store):
        """A cache hit skips the store."""
        accounts, backend = self._manager(memory_store)
        account = accounts.upsert(accounts.from_key("acme", name="Acme"))
        memory_store.clear()
        assert accounts.get(account.object_key) == account

    def test_get_populates_cache(self, memory_store):
        """A store hit is cached."""
        accounts, backend = self._manager(memory_store)
        key = Key("Account", "acme")
        memory_store.put(Document(key, {"name": "Acme"}))
        assert key.urlsafe() not in backend
        accounts.get(key)
        assert key.urlsafe() in backend

    def test_cache_hit_upserts(self, memory_store):
        """A cached copy is lazily bound when saved again."""
        accounts, backend = self._manager(memory_store)
        accounts.upsert(accounts.from_key("acme", name="Acme"))
        cached = accounts.get(Key("Account", "acme"))
        assert not cached.is_bound
        cached.name = "Acme Corp"
        accounts.upsert(cached)
        assert memory_store.get(Key("Account", "acme")).get_property("name") == "Acme Corp"

    def test_factories_skip_cache(self, memory_store):
        """Factories never write to the cache."""
        accounts, backend = self._manager(memory_store)
        accounts.from_key("acme")
        accounts.new_entity()
        assert len(backend) == 0

    def test_facade_caches_by_default(self, db: BurrowDB):
        """BurrowDB managers are cached unless disabled."""
        assert db.manager(Account).caching_enabled
        assert db.manager(Account) is db.manager(Account)

    def test_facade_without_cache(self, uncached_db: BurrowDB):
        """The cache can be turned off."""
        assert not uncached_db.manager(Account).caching_enabled


class FailingDeleteStore(InMemoryDocumentStore):
    """Memory store whose transactions fail on delete."""

    def begin_transaction(self):
        transaction = super().begin_transaction()

        def fail(key):
            raise StoreError("disk full")

        transaction.delete = fail
        return transaction


class RecordingSQLStore(SQLDocumentStore):
    """SQL store that keeps every transaction it hands out."""

    def __init__(self, url):
        super().__init__(url)
        self.transactions = []

    def begin_transaction(self):
        transaction = super().begin_transaction()
        self.transactions.append(transaction)
        return transaction


class TestDelete:
    """Tests for delete."""

    def test_delete_entity(self, accounts):
        """Deleting returns the entity and removes it from store and cache."""
        account = accounts.upsert(accounts.from_key("acme"))
        assert accounts.delete(account) is account
        assert accounts.get(account.object_key) is None
        assert not accounts.exists(account.get_key())

    def test_delete_by_key(self, accounts):
        """A key is resolved first."""
        account = accounts.upsert(accounts.from_key("acme", name="Acme"))
        deleted = accounts.delete(account.object_key)
        assert deleted == account
        assert accounts.get(account.object_key) is None

    def test_delete_missing_key(self, accounts):
        """A key with no document returns None."""
        assert accounts.delete(Key("Account", "nobody")) is None

    def test_delete_unsaved_entity(self, accounts):
        """An entity that was never stored returns None."""
        assert accounts.delete(accounts.from_key("ghost")) is None

    def test_delete_missing_leaves_cache(self, memory_store):
        """A benign no-op does not evict."""
        backend = MemoryCache("Account")
        accounts = EntityManager(Account, memory_store, EntityCache(Account, backend))
        ghost = accounts.from_key("ghost")
        backend.put("unrelated", "x")
        assert accounts.delete(ghost) is None
        assert backend.get("unrelated") == "x"

    def test_delete_failure(self, caplog):
        """A store failure rolls back and raises TransactionFailedError."""
        store = FailingDeleteStore()
        accounts = EntityManager(Account, store)
        account = accounts.upsert(accounts.from_key("acme"))

        with pytest.raises(TransactionFailedError) as exc_info:
            accounts.delete(account)
        assert exc_info.value.operation == "delete"
        assert "disk full" in exc_info.value.reason
        assert store.exists(account.get_key())
        assert "Failed to delete" in caplog.text

    def test_delete_blocked_by_database(self, tmp_path, caplog):
        """A statement the database rejects rolls back, logs and keeps the cache."""
        store = RecordingSQLStore(f"sqlite:///{tmp_path / 'locked.db'}")
        backend = MemoryCache("Account")
        accounts = EntityManager(Account, store, EntityCache(Account, backend))
        account = accounts.upsert(accounts.from_key("acme", name="Acme"))
        with store.connection.engine.begin() as conn:
            conn.execute(
                text(
                    "CREATE TRIGGER keep_documents BEFORE DELETE ON bdb_documents "
                    "BEGIN SELECT RAISE(ABORT, 'documents are locked'); END"
                )
            )

        with pytest.raises(TransactionFailedError) as exc_info:
            accounts.delete(account)
        assert "documents are locked" in exc_info.value.reason
        assert not store.transactions[-1].is_active
        assert store.exists(account.get_key())
        assert backend.get(account.object_key) is not None
        assert "Failed to delete Account Account:acme" in caplog.text
        store.close()

    def test_delete_with_missing_table(self, tmp_path, caplog):
        """A read failure inside the transaction becomes TransactionFailedError."""
        store = RecordingSQLStore(f"sqlite:///{tmp_path / 'dropped.db'}")
        accounts = EntityManager(Account, store)
        account = accounts.upsert(accounts.from_key("acme", name="Acme"))
        DocumentRecord.__table__.drop(store.connection.engine)

        with pytest.raises(TransactionFailedError) as exc_info:
            accounts.delete(account)
        assert exc_info.value.operation == "delete"
        assert isinstance(exc_info.value.__cause__, StoreError)
        assert not store.transactions[-1].is_active
        assert "Failed to delete Account" in caplog.text
        store.close()

    def test_delete_none(self, accounts):
        """None is a programmer error."""
        with pytest.raises(PreconditionError):
            accounts.delete(None)


class TestQueries:
    """Tests for query building and finders."""

    def test_find_all(self, accounts, invoices):
        """find_all returns every entity of the kind."""
        _seed(accounts, invoices)
        assert [a.name for a in accounts.find_all()] == ["Acme", "Globex"]
        assert len(invoices.find_all()) == 4

    def test_find_by_parent(self, accounts, invoices):
        """Parent scoping accepts entities, keys and key strings."""
        acme, globex = _seed(accounts, invoices)
        assert [i.number for i in invoices.find_by_parent(acme)] == [1, 2, 3]
        assert [i.number for i in invoices.find_by_parent(globex.get_key())] == [9]
        assert [i.number for i in invoices.find_by_parent(globex.object_key)] == [9]

    def test_find_first_by_parent(self, accounts, invoices):
        """find_first_by_parent returns one entity or None."""
        acme, _ = _seed(accounts, invoices)
        assert invoices.find_first_by_parent(acme).number == 1
        assert invoices.find_first_by_parent(Key("Account", "nobody")) is None

    def test_find_by_value(self, accounts, invoices):
        """Equality on one field."""
        _seed(accounts, invoices)
        assert [i.number for i in invoices.find_by_value("state", "open")] == [2, 3, 9]
        assert invoices.find_first_by_value("state", "paid").number == 1
        assert invoices.find_first_by_value("state", "void") is None

    def test_find_by_enum_value(self, accounts, invoices):
        """Enum filter values are encoded as ordinals."""
        _seed(accounts, invoices)
        assert [a.name for a in accounts.find_by_value("plan", Plan.PRO)] == ["Acme"]
        assert [a.name for a in accounts.find_by_value("plan", Plan.FREE)] == ["Globex"]

    def test_find_by_values(self, accounts, invoices):
        """Several filters are ANDed."""
        _seed(accounts, invoices)
        found = invoices.find_by_values({"state": "open", "amount": 20.0})
        assert [i.number for i in found] == [3]

    def test_single_and_composite_filters_agree(self, accounts, invoices):
        """One filter gives the same results as the same filter twice."""
        _seed(accounts, invoices)
        single = invoices.query_entities(invoices.with_filters(invoices.query(), {"state": "open"}))
        query = invoices.with_filters(invoices.query(), {"state": "open"})
        query.filter("state", "open")
        assert single == invoices.query_entities(query)

    def test_find_by_parent_and_value(self, accounts, invoices):
        """Parent scope combined with a filter."""
        acme, _ = _seed(accounts, invoices)
        found = invoices.find_by_parent_and_value(acme, "state", "open")
        assert [i.number for i in found] == [2, 3]

    def test_with_sort(self, accounts, invoices):
        """Sorts apply in mapping order, ties broken by later clauses."""
        _seed(accounts, invoices)
        query = invoices.with_sort(invoices.query(), {"state": "asc", "amount": "desc"})
        assert [i.number for i in invoices.query_entities(query)] == [2, 3, 9, 1]

    def test_find(self, accounts, invoices):
        """find combines scope, filters, sort and paging."""
        acme, _ = _seed(accounts, invoices)
        found = invoices.find(
            parent=acme,
            values={"state": "open"},
            sort={"amount": "asc"},
            limit=1,
        )
        assert [i.number for i in found] == [3]
        assert [i.number for i in invoices.find(sort={"number": "desc"}, offset=2)] == [2, 1]

    def test_iter_and_count(self, accounts, invoices):
        """iter_entities is lazy and count matches."""
        acme, _ = _seed(accounts, invoices)
        iterator = invoices.iter_entities(invoices.query(ancestor=acme))
        assert next(iterator).number == 1
        assert invoices.count(invoices.query(ancestor=acme)) == 3
        assert invoices.count() == 4

    def test_query_results_are_bound(self, accounts, invoices):
        """Query results carry their documents."""
        _seed(accounts, invoices)
        assert all(i.is_bound for i in invoices.find_all())

    def test_query_for_other_kind(self, accounts, invoices):
        """A query built for another kind is refused."""
        with pytest.raises(EntityKindMismatchError):
            accounts.query_entities(invoices.query())
