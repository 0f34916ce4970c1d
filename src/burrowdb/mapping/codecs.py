"""Field codecs: how one declared field is stored in a document.

- scalars are stored as-is
- datetimes are stored as ISO-8601 text
- enums are stored as their zero-based declaration ordinal
- nested entities are stored as their JSON text under ``"$_" + field``
"""

from __future__ import annotations

import types
from datetime import date, datetime
from enum import Enum
from typing import Any, Union, get_args, get_origin

from burrowdb.mapping import serialization

NESTED_PREFIX = "$_"


class _Nothing:
    """Marker for "decode produced no value; leave the field alone"."""

    _instance: _Nothing | None = None

    def __new__(cls) -> _Nothing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOTHING"

    def __bool__(self) -> bool:
        return False


NOTHING = _Nothing()


class Codec:
    """Scalar passthrough; base for the other codecs."""

    nested = False
    label = "scalar"

    def property_name(self, field_name: str) -> str:
        return field_name

    def encode(self, value: Any) -> Any:
        return value

    def decode(self, raw: Any) -> Any:
        return raw

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class DateTimeCodec(Codec):
    label = "datetime"

    def __init__(self, target: type[date] = datetime) -> None:
        self.target = target

    def encode(self, value: Any) -> Any:
        if isinstance(value, date):
            return value.isoformat()
        return value

    def decode(self, raw: Any) -> Any:
        if raw is None or isinstance(raw, self.target):
            return raw
        if isinstance(raw, str):
            return self.target.fromisoformat(raw)
        raise TypeError(f"expected ISO-8601 text, got {type(raw).__name__}")


class EnumCodec(Codec):
    label = "enum"

    def __init__(self, enum_class: type[Enum]) -> None:
        self.enum_class = enum_class
        self.members = list(enum_class)

    def encode(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, self.enum_class):
            return self.members.index(value)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise TypeError(f"expected {self.enum_class.__name__} or ordinal, got {value!r}")

    def decode(self, raw: Any) -> Any:
        if raw is None or isinstance(raw, self.enum_class):
            return raw
        if isinstance(raw, float) and raw.is_integer():
            raw = int(raw)
        if isinstance(raw, int) and not isinstance(raw, bool):
            if 0 <= raw < len(self.members):
                return self.members[raw]
            return NOTHING
        if isinstance(raw, str) and raw in self.enum_class.__members__:
            return self.enum_class[raw]
        return NOTHING

    def __repr__(self) -> str:
        return f"EnumCodec({self.enum_class.__name__})"


class EntityCodec(Codec):
    nested = True
    label = "entity"

    def __init__(self, entity_class: type[Any]) -> None:
        self.entity_class = entity_class

    def property_name(self, field_name: str) -> str:
        return NESTED_PREFIX + field_name

    def encode(self, value: Any) -> Any:
        if value is None:
            return None
        return serialization.dumps(value)

    def decode(self, raw: Any) -> Any:
        if raw is None:
            return None
        if isinstance(raw, dict):
            return serialization.from_payload(raw, self.entity_class)
        return serialization.loads(raw, self.entity_class)

    def __repr__(self) -> str:
        return f"EntityCodec({self.entity_class.__name__})"


def _unwrap_optional(annotation: Any) -> Any:
    """Reduce ``X | None`` / ``Optional[X]`` to ``X``."""
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def codec_for(annotation: Any) -> Codec:
    """Pick the codec for a field annotation."""
    from burrowdb.mapping.entity import Entity

    target = _unwrap_optional(annotation)
    if isinstance(target, type) and get_origin(target) is None:
        if issubclass(target, Entity):
            return EntityCodec(target)
        if issubclass(target, Enum):
            return EnumCodec(target)
        if issubclass(target, date):
            return DateTimeCodec(target)
    return Codec()
