"""SQLAlchemy ORM model for the document table.

Every entity of every kind is one row in ``bdb_documents``. All properties
live in a single JSON column (JSONB on PostgreSQL), so adding a field to an
entity class never needs DDL.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Dialect-aware JSON type: JSONB on PostgreSQL, JSON on SQLite
JSONType = JSONB().with_variant(JSON(), "sqlite")


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all BurrowDB models."""

    pass


class DocumentRecord(Base):
    """One stored document, addressed by its key path."""

    __tablename__ = "bdb_documents"

    path: Mapped[str] = mapped_column(Text, primary_key=True)
    kind: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    properties: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("ix_bdb_documents_kind_path", "kind", "path"),
        Index("ix_bdb_documents_parent_path", "parent_path"),
    )

