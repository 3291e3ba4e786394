"""Database layer - engine, base classes and column types."""

from ticketflow_kernel.db.base import UUID, Base, TrackedBase, UUIDString, as_utc
from ticketflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "as_utc",
]
