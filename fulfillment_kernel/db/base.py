"""
Module: fulfillment_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, type annotation map for consistent column
    types, and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  MUST NOT import from models/,
    services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Money precision: type_annotation_map maps Decimal to Numeric(18, 2).
      Never use float for amounts.
    - Timestamps are timezone-aware on every backend (see UTCDateTime).
    - Audit columns: TrackedBase provides created_at, updated_at,
      created_by_id, and updated_by_id.  Actor ids are opaque strings owned
      by the external account system.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from fulfillment_kernel.db.types import UTCDateTime


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(18, 2).
        - datetime maps to UTCDateTime (always timezone-aware on read).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: Integer,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required.  "system" is used for automated actors.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    updated_by_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )


UUID = PyUUID
