"""
Module: inventory_kernel.db.types
Responsibility: Column types shared by every model, so that timestamps are
    stored identically system-wide.
Architecture position: Kernel > DB.  May be imported by models/, services/
    and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Timestamps are always timezone-aware UTC on the Python side, whatever
      the backend stores (SQLite keeps naive wall time).
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


def utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive input is taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime normalized to UTC.

    Guarantees:
        - process_bind_param: aware values are converted to UTC; naive values
          are taken to already be UTC.
        - process_result_value: values come back aware (UTC) even from
          backends without timezone support.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return utc(value) if value is not None else None

    def process_result_value(self, value, dialect):
        return utc(value) if value is not None else None
