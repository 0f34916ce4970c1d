"""JSON transport form of entities.

This is the serialization collaborator shared by the cache, nested-entity
properties and ``Entity.to_json()``. The JSON document is the pydantic JSON
dump of the entity graph plus a ``__kind__`` marker, which lets ``loads``
find the entity class without being told.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from burrowdb.exceptions import SerializationError, UnknownKindError

if TYPE_CHECKING:
    from burrowdb.mapping.entity import Entity

logger = logging.getLogger(__name__)

KIND_FIELD = "__kind__"

E = TypeVar("E", bound="Entity")

_registry: dict[str, type[Entity]] = {}


def register(entity_class: type[Entity]) -> None:
    """Register an entity class under its kind."""
    kind = entity_class.kind()
    previous = _registry.get(kind)
    if previous is not None and previous is not entity_class:
        logger.debug(f"Kind '{kind}' re-registered: {previous!r} -> {entity_class!r}")
    _registry[kind] = entity_class


def registered_kinds() -> list[str]:
    return sorted(_registry)


def resolve(kind: str) -> type[Entity]:
    """Look up the entity class registered for a kind.

    Raises:
        UnknownKindError: If no class is registered under the kind
    """
    try:
        return _registry[kind]
    except KeyError:
        raise UnknownKindError(kind, registered_kinds()) from None


def to_payload(entity: Entity) -> dict[str, Any]:
    """Return the JSON-compatible dict form of an entity."""
    try:
        payload = entity.model_dump(mode="json")
    except PydanticSerializationError as e:
        raise SerializationError(f"Cannot serialize {entity.kind()} entity: {e}") from e
    payload[KIND_FIELD] = entity.kind()
    return payload


def dumps(entity: Entity) -> str:
    """Serialize an entity graph to JSON text."""
    try:
        return json.dumps(to_payload(entity), separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot serialize {entity.kind()} entity: {e}") from e


def from_payload(data: dict[str, Any], entity_class: type[E] | None = None) -> E:
    """Build an entity from its dict form."""
    data = dict(data)
    kind = data.pop(KIND_FIELD, None)

    target: type[Entity]
    if entity_class is None:
        if not kind:
            raise SerializationError(f"JSON document has no '{KIND_FIELD}' marker")
        target = resolve(kind)
    else:
        target = entity_class
        if kind and kind != entity_class.kind():
            registered = _registry.get(kind)
            if registered is None or not issubclass(registered, entity_class):
                raise SerializationError(
                    f"JSON document of kind '{kind}' cannot be read as {entity_class.kind()}",
                    {"kind": kind, "expected_kind": entity_class.kind()},
                )
            target = registered

    try:
        return target.model_validate(data)  # type: ignore[return-value]
    except ValidationError as e:
        raise SerializationError(
            f"Invalid {target.kind()} document: {e.error_count()} validation error(s)",
            {"errors": e.errors(include_url=False)},
        ) from e


def loads(text: str | bytes, entity_class: type[E] | None = None) -> E:
    """Deserialize JSON text produced by :func:`dumps`.

    Args:
        text: JSON document
        entity_class: Expected class; resolved from the kind marker when omitted
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Malformed entity JSON: {e}") from e
    if not isinstance(data, dict):
        raise SerializationError(f"Entity JSON must be an object, got {type(data).__name__}")
    return from_payload(data, entity_class)
