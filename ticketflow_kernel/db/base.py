"""
ticketflow_kernel.db.base -- Declarative base and column conventions.

Every table has a UUID primary key stored as a 36-character string, so
the same schema runs on SQLite and server databases.  The domain passes
ids around as strings; ``UUIDString`` accepts either form on the way in
and hands back ``uuid.UUID`` on the way out.

Timestamps are timezone-aware columns.  SQLite drops the offset when it
stores them, so readers go through ``as_utc``.
"""

from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID column stored as ``String(36)``."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        # Normalizes case and rejects malformed ids before they reach the table
        return str(value if isinstance(value, PyUUID) else PyUUID(str(value)))

    def process_result_value(self, value: Any, dialect: Any) -> PyUUID | None:
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Rows that record who created them and who changed them last.

    ``created_at``/``updated_at`` are filled in by the database;
    ``created_by`` is required and ``modified_by`` follows the last writer.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    created_by: Mapped[str] = mapped_column(String(200), nullable=False)
    modified_by: Mapped[str | None] = mapped_column(String(200), nullable=True)


def as_utc(value: datetime | None) -> datetime | None:
    """Reattach UTC to a naive timestamp read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


UUID = PyUUID
