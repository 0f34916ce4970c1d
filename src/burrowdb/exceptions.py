"""Custom exceptions for BurrowDB.

All exceptions carry a human-readable message plus a ``context`` dict so
callers (and the CLI's ``--json`` mode) can report them in a structured way.

"Not found" is not an error at the manager surface: lookups return
``None`` for missing documents. ``DocumentNotFoundError`` only travels between
a store adapter and the manager.
"""

from __future__ import annotations

from typing import Any


class BurrowDBError(Exception):
    """Base exception for all BurrowDB errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(BurrowDBError):
    """Failed to connect to the database."""

    pass


class StoreError(BurrowDBError):
    """A document store operation failed."""

    pass


class QueryError(StoreError):
    """Query execution failed."""

    pass


class InvalidKeyError(BurrowDBError):
    """A key string or key part is malformed."""

    def __init__(self, value: object, reason: str) -> None:
        message = f"Invalid key {value!r}: {reason}"
        super().__init__(message, {"value": str(value), "reason": reason})
        self.value = value
        self.reason = reason


class DocumentNotFoundError(StoreError):
    """No document is stored under the given key."""

    def __init__(self, key_path: str) -> None:
        super().__init__(f"No document found for key '{key_path}'.", {"key": key_path})
        self.key_path = key_path


class PreconditionError(BurrowDBError):
    """A caller broke a method contract (programming error, not a runtime condition)."""

    pass


class EntityKindMismatchError(PreconditionError):
    """An entity of one kind was handed to a manager bound to another kind."""

    def __init__(self, expected_kind: str, actual_kind: str) -> None:
        message = (
            f"Cannot store a '{actual_kind}' entity with the '{expected_kind}' manager. "
            f"Use the manager for '{actual_kind}' instead."
        )
        super().__init__(message, {"expected_kind": expected_kind, "actual_kind": actual_kind})
        self.expected_kind = expected_kind
        self.actual_kind = actual_kind


class TransactionFailedError(StoreError):
    """A store transaction failed and was rolled back."""

    def __init__(self, operation: str, key_path: str, reason: str) -> None:
        message = (
            f"Transaction for {operation} of '{key_path}' failed and was rolled back: {reason}"
        )
        super().__init__(message, {"operation": operation, "key": key_path, "reason": reason})
        self.operation = operation
        self.key_path = key_path
        self.reason = reason


class FieldNotFoundError(BurrowDBError):
    """Field is not declared on the entity class."""

    def __init__(
        self, field_name: str, kind: str, available_fields: list[str] | None = None
    ) -> None:
        available = available_fields or []
        if available:
            message = (
                f"Field '{field_name}' not found on '{kind}'. "
                f"Available fields: {', '.join(available)}"
            )
        else:
            message = f"Field '{field_name}' not found on '{kind}'. No fields declared."

        super().__init__(
            message,
            {"field_name": field_name, "kind": kind, "available_fields": available},
        )
        self.field_name = field_name
        self.kind = kind
        self.available_fields = available


class FieldMappingError(BurrowDBError):
    """A single property could not be moved between an entity and its document."""

    def __init__(self, field_name: str, kind: str, reason: str) -> None:
        message = f"Cannot map property '{field_name}' on '{kind}': {reason}"
        super().__init__(message, {"field_name": field_name, "kind": kind, "reason": reason})
        self.field_name = field_name
        self.kind = kind
        self.reason = reason


class SerializationError(BurrowDBError):
    """An entity could not be converted to or from its JSON form."""

    pass


class UnknownKindError(SerializationError):
    """No entity class is registered for a kind."""

    def __init__(self, kind: str, registered_kinds: list[str] | None = None) -> None:
        registered = registered_kinds or []
        if registered:
            message = f"Unknown entity kind '{kind}'. Registered kinds: {', '.join(registered)}"
        else:
            message = f"Unknown entity kind '{kind}'. No entity classes are registered."
        super().__init__(message, {"kind": kind, "registered_kinds": registered})
        self.kind = kind
        self.registered_kinds = registered
