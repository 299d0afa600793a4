"""
Module: fulfillment_kernel.db.types
Responsibility: Column types and annotated aliases shared by every model.
    Keeps enum storage, timestamp handling and money precision identical
    across PostgreSQL and SQLite.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Enum columns hold the member's string value, never the member name,
      and never a native database enum type.
    - Timestamps are stored in UTC and come back timezone-aware, even on
      SQLite which has no native timezone support.
    - Money is Decimal with two places; round_money() is the only rounding
      function used on amounts.

Failure modes:
    - ValueError from StrEnumType when a stored value is not a member of
      the mapped enum (corrupt row or enum drift).
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from sqlalchemy import DateTime, String
from sqlalchemy.types import TypeDecorator

MONEY_DECIMAL_PLACES = 2


def round_money(amount: Decimal) -> Decimal:
    """Quantize an amount to two decimal places, half-up."""
    return amount.quantize(
        Decimal(1).scaleb(-MONEY_DECIMAL_PLACES), rounding=ROUND_HALF_UP
    )


class StrEnumType(TypeDecorator):
    """
    Enum stored as its string value in a VARCHAR column.

    Contract:
        Binds either an enum member or its raw string value; always loads
        an enum member.  Portable across drivers that cannot adapt Enum
        subclasses directly.
    """

    impl = String(30)
    cache_ok = True

    def __init__(self, enum_class: type[Enum], length: int = 30):
        super().__init__(length=length)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, self.enum_class):
            return value.value
        return self.enum_class(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)


def utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp normalized to UTC.

    SQLite drops tzinfo on round trip; naive values read back are treated
    as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return utc(value)
