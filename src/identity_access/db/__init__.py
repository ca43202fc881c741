"""Persistence primitives: engine holder, declarative base, column types."""

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_values, metadata, utc_now
from .database import Database, DatabaseConfig, db, get_db_session, session_scope
from .types import UTCDateTime, UUIDType

__all__ = [
    "Base",
    "Database",
    "DatabaseConfig",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDPrimaryKeyMixin",
    "UUIDType",
    "db",
    "enum_values",
    "get_db_session",
    "metadata",
    "session_scope",
    "utc_now",
]
