"""Entity base class.

An entity is a pydantic model with a canonical key string and a lifecycle
status. It can be bound to a :class:`~burrowdb.store.document.Document`
(its stored form) and keeps the two in step:

- ``hydrate(document)`` reads every stored property into the typed fields
- ``project(source)`` writes every eligible field into the fields and, when
  bound, the document

Declared fields should have defaults, so an entity can be built from a
document that predates a field.

Example:
    class Address(Entity):
        city: str = ""

    class Customer(Entity):
        name: str = ""
        tier: Tier = Tier.FREE
        address: Address | None = None

    customer = Customer.create("acme", name="Acme")
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, PrivateAttr

from burrowdb.core.keys import Key
from burrowdb.exceptions import BurrowDBError, FieldMappingError, FieldNotFoundError
from burrowdb.mapping import serialization
from burrowdb.mapping.codecs import NOTHING
from burrowdb.mapping.fields import FieldDescriptor, FieldTable, table_for
from burrowdb.store.document import Document

logger = logging.getLogger(__name__)


class Status(IntEnum):
    """Generic lifecycle flag, independent of whether the entity is stored."""

    INACTIVE = 0
    ACTIVE = 1
    ARCHIVED = 2
    SUSPENDED = 3


class Entity(BaseModel):
    """Base class for stored entities.

    The kind of an entity class is its class name unless the class sets
    ``__kind__``.
    """

    model_config = ConfigDict(extra="ignore")

    object_key: str
    status: Status = Status.INACTIVE

    _document: Document | None = PrivateAttr(default=None)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        serialization.register(cls)

    @classmethod
    def kind(cls) -> str:
        return cls.__dict__.get("__kind__", cls.__name__)

    @classmethod
    def field_table(cls) -> FieldTable:
        return table_for(cls)

    # -- construction -------------------------------------------------------

    @classmethod
    def create(
        cls,
        key_name: str | None = None,
        /,
        *,
        key_id: int | None = None,
        parent_key: Entity | Key | str | None = None,
        **fields: Any,
    ) -> Self:
        """Build a new, not yet stored entity bound to an empty document.

        The key arguments are named apart from ``fields`` so an entity may
        declare fields such as ``name``, ``id`` or ``parent``. A fresh random
        key name is generated when neither ``key_name`` nor ``key_id`` is given.
        """
        parent = key_of(parent_key) if parent_key is not None else None
        if key_name is None and key_id is None:
            key = Key.new(cls.kind(), parent=parent)
        else:
            key = Key(cls.kind(), key_name, id=key_id, parent=parent)
        entity = cls(object_key=key.urlsafe(), **fields)
        entity._document = Document(key)
        return entity

    @classmethod
    def from_document(cls, document: Document, *, strict: bool = False) -> Self:
        """Build an entity from a stored document."""
        entity = cls.model_construct(object_key=document.key.urlsafe())
        entity.hydrate(document, strict=strict)
        return entity

    @classmethod
    def from_json(cls, text: str | bytes) -> Self:
        """Rebuild an entity from :meth:`to_json` output."""
        return serialization.loads(text, cls)

    def to_json(self) -> str:
        """Serialize the full entity graph, nested entities included."""
        return serialization.dumps(self)

    # -- identity -----------------------------------------------------------

    def get_key(self) -> Key:
        if self._document is not None:
            return self._document.key
        return Key.from_urlsafe(self.object_key)

    def get_parent_key(self) -> Key | None:
        return self.get_key().parent

    @property
    def document(self) -> Document | None:
        return self._document

    @property
    def is_bound(self) -> bool:
        return self._document is not None

    def bind(self, document: Document) -> None:
        """Attach a backing document without reading it."""
        self._document = document

    # -- status helpers -----------------------------------------------------

    def activate(self) -> None:
        self.status = Status.ACTIVE

    def deactivate(self) -> None:
        self.status = Status.INACTIVE

    def archive(self) -> None:
        self.status = Status.ARCHIVED

    def suspend(self) -> None:
        self.status = Status.SUSPENDED

    @property
    def is_active(self) -> bool:
        return self.status == Status.ACTIVE

    # -- document -> fields -------------------------------------------------

    def hydrate(self, document: Document, *, strict: bool = False) -> list[FieldMappingError]:
        """Bind to ``document`` and load its properties into the fields.

        Properties with no matching field are skipped. A property that fails
        to map is logged and skipped, and the failure is returned, unless
        ``strict`` is set, in which case it is raised.

        Returns:
            Mapping failures, empty when every known property loaded
        """
        self._document = document
        self.object_key = document.key.urlsafe()

        table = self.field_table()
        errors: list[FieldMappingError] = []
        for property_name, raw in document.properties.items():
            descriptor = table.lookup_property(property_name)
            if descriptor is None:
                logger.debug(f"No field for property '{property_name}' on {self.kind()}, skipping")
                continue
            try:
                self._read_property(descriptor, raw)
            except (BurrowDBError, TypeError, ValueError) as e:
                error = self._mapping_error(descriptor.name, e)
                if strict:
                    raise error from e
                logger.warning(error.message)
                errors.append(error)
        return errors

    def _read_property(self, descriptor: FieldDescriptor, raw: Any) -> None:
        if not descriptor.codec.nested:
            coerce = descriptor.setter_for(raw)
            if coerce is not None:
                coerce(self, raw)
                return

        value = descriptor.codec.decode(raw)
        if value is NOTHING:
            logger.debug(
                f"Property '{descriptor.name}' on {self.kind()} has no decodable value {raw!r}"
            )
            return
        descriptor.set(self, value)

    # -- fields -> document -------------------------------------------------

    def project(self, source: Entity) -> list[FieldMappingError]:
        """Copy every eligible field of ``source`` into this entity.

        When this entity is bound, each value is also encoded into the
        document. The key field is never copied.

        Returns:
            Mapping failures; the remaining fields are still copied
        """
        own = self.field_table()
        errors: list[FieldMappingError] = []
        for descriptor in source.field_table():
            target = own.get(descriptor.name)
            if target is None:
                continue
            try:
                value = descriptor.get(source)
                target.set(self, value)
                if self._document is not None:
                    self._write_property(self._document, target, value)
            except (BurrowDBError, AttributeError, TypeError, ValueError) as e:
                error = self._mapping_error(descriptor.name, e)
                logger.warning(error.message)
                errors.append(error)
        return errors

    def write(self) -> list[FieldMappingError]:
        """Reconcile this entity's own fields into its document."""
        return self.project(self)

    @staticmethod
    def _write_property(document: Document, descriptor: FieldDescriptor, value: Any) -> None:
        encoded = descriptor.codec.encode(value)
        name = descriptor.property_name
        if document.has_property(name):
            current = document.get_property(name)
            if type(current) is type(encoded) and current == encoded:
                return
        document.set_property(name, encoded)

    def set_field(self, name: str, value: Any) -> None:
        """Set a field and, when bound, its encoded document property.

        Raises:
            FieldNotFoundError: If the field is not declared on this class
        """
        table = self.field_table()
        descriptor = table.get(name)
        if descriptor is None:
            raise FieldNotFoundError(name, self.kind(), table.names)
        descriptor.set(self, value)
        if self._document is not None:
            self._write_property(self._document, descriptor, value)

    def set_property(self, name: str, value: Any) -> bool:
        """Set a field and its raw document property together.

        Returns False without changing anything if the entity is not bound
        yet or has no such field.
        """
        if self._document is None:
            return False
        descriptor = self.field_table().get(name)
        if descriptor is None:
            return False
        descriptor.set(self, value)
        self._document.set_property(descriptor.property_name, value)
        return True

    def _mapping_error(self, field_name: str, error: Exception) -> FieldMappingError:
        if isinstance(error, FieldMappingError):
            return error
        reason = error.message if isinstance(error, BurrowDBError) else str(error)
        return FieldMappingError(field_name, self.kind(), reason)

    # -- value semantics ----------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return type(self) is type(other) and self.model_dump() == other.model_dump()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.get_key().path!r})"


def key_of(value: Entity | Key | str) -> Key:
    """Resolve an entity, key or key string to a Key."""
    if isinstance(value, Entity):
        return value.get_key()
    return Key.coerce(value)
