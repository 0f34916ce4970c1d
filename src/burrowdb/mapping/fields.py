"""Per-class field descriptor tables.

Each entity class gets a :class:`FieldTable` listing the fields that take
part in persistence, with the codec that stores each one and any coercing
setters declared with :func:`setter`. Tables are built lazily from pydantic's
``model_fields`` the first time a class is mapped.

Eligible fields are all model fields except the key field and fields
declared with ``Field(exclude=True)``, which play the role of transient
fields: they live on the object but never reach the store.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from burrowdb.mapping.codecs import Codec, codec_for

if TYPE_CHECKING:
    from burrowdb.mapping.entity import Entity

KEY_FIELD = "object_key"
SETTER_ATTRIBUTE = "__burrow_setter__"

F = TypeVar("F", bound=Callable[..., Any])


def setter(field_name: str, *value_types: type) -> Callable[[F], F]:
    """Declare a method that coerces raw stored values for a field.

    When a document is hydrated and the stored value's exact runtime type is
    one of ``value_types``, the method is called with the raw value instead
    of the field's codec.

    Example:
        class Person(Entity):
            tags: list[str] = []

            @setter("tags", str)
            def _split_legacy_tags(self, value: str) -> None:
                self.tags = value.split(",")
    """
    if not value_types:
        raise TypeError("setter() needs at least one value type")

    def decorator(func: F) -> F:
        setattr(func, SETTER_ATTRIBUTE, (field_name, value_types))
        return func

    return decorator


@dataclass(frozen=True)
class FieldDescriptor:
    """One persisted field: name, codec and coercing setters."""

    name: str
    codec: Codec
    setters: dict[type, Callable[[Any, Any], None]] = field(default_factory=dict)

    @property
    def property_name(self) -> str:
        return self.codec.property_name(self.name)

    def get(self, entity: Entity) -> Any:
        return getattr(entity, self.name)

    def set(self, entity: Entity, value: Any) -> None:
        setattr(entity, self.name, value)

    def setter_for(self, raw: Any) -> Callable[[Any, Any], None] | None:
        return self.setters.get(type(raw))


class FieldTable:
    """Ordered collection of field descriptors for one entity class."""

    def __init__(self, kind: str, descriptors: list[FieldDescriptor]) -> None:
        self.kind = kind
        self._by_name = {d.name: d for d in descriptors}
        self._by_property = {d.property_name: d for d in descriptors}

    @classmethod
    def build(cls, entity_class: type[Entity]) -> FieldTable:
        setters: dict[str, dict[type, Callable[[Any, Any], None]]] = {}
        # Walk base classes first so subclass setters override
        for klass in reversed(entity_class.__mro__):
            for attribute in vars(klass).values():
                if not inspect.isfunction(attribute):
                    continue
                declared = getattr(attribute, SETTER_ATTRIBUTE, None)
                if declared is None:
                    continue
                field_name, value_types = declared
                for value_type in value_types:
                    setters.setdefault(field_name, {})[value_type] = attribute

        descriptors = []
        for name, info in entity_class.model_fields.items():
            if name == KEY_FIELD or info.exclude:
                continue
            descriptors.append(
                FieldDescriptor(
                    name=name,
                    codec=codec_for(info.annotation),
                    setters=setters.get(name, {}),
                )
            )
        return cls(entity_class.kind(), descriptors)

    @property
    def names(self) -> list[str]:
        return list(self._by_name)

    def get(self, name: str) -> FieldDescriptor | None:
        return self._by_name.get(name)

    def lookup_property(self, property_name: str) -> FieldDescriptor | None:
        """Find the field stored under a document property name."""
        return self._by_property.get(property_name)

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name


_tables: dict[type, FieldTable] = {}


def table_for(entity_class: type[Entity]) -> FieldTable:
    """Get (building on first use) the field table of an entity class."""
    table = _tables.get(entity_class)
    if table is None:
        table = FieldTable.build(entity_class)
        _tables[entity_class] = table
    return table
