"""Entity mapping: entity base, field tables, codecs and serialization."""

from burrowdb.mapping.codecs import NESTED_PREFIX, NOTHING, codec_for
from burrowdb.mapping.entity import Entity, Status, key_of
from burrowdb.mapping.fields import FieldDescriptor, FieldTable, setter, table_for

__all__ = [
    "Entity",
    "Status",
    "key_of",
    "setter",
    "FieldDescriptor",
    "FieldTable",
    "table_for",
    "codec_for",
    "NESTED_PREFIX",
    "NOTHING",
]
