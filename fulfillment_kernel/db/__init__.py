"""Database layer - engine, base classes, and column types."""

from fulfillment_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from fulfillment_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    session_scope,
)
from fulfillment_kernel.db.types import StrEnumType, UTCDateTime, round_money, utc

__all__ = [
    "get_engine",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "StrEnumType",
    "UTCDateTime",
    "round_money",
    "utc",
]
