"""
Base ORM Model and Column Types.

============================================================
PURPOSE
============================================================
Provides the declarative base and shared column types used by
all ORM models of the house points store.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- UTCDateTime: timezone-aware timestamps on every backend

============================================================
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timestamp column stored as naive UTC, returned as aware UTC.

    SQLite drops tzinfo on round-trip; normalizing on write keeps
    deadline comparisons (expires_at < now) consistent everywhere.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    All models in the store inherit from this base.
    """

    type_annotation_map = {
        datetime: UTCDateTime(),
    }
