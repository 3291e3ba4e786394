"""
Module: ticketflow_kernel.models.workflow_definition
Responsibility: ORM persistence for workflow definition documents.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one active default per workflow type.  The service clears
      other defaults in the same transaction; the partial unique index is
      the database backstop.
    - Soft delete only: rows are retired by clearing ``is_active``.

The ``definition`` column stores the document body (stages, transitions,
rules, initialStatus) as JSON in its camelCase wire form.  Parsing into
domain types happens above the kernel.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow_kernel.db.base import TrackedBase


class WorkflowDefinitionModel(TrackedBase):
    """Persistent workflow definition row."""

    __tablename__ = "workflow_definitions"

    __table_args__ = (
        Index(
            "uq_workflow_definitions_one_default",
            "workflow_type",
            unique=True,
            postgresql_where=text("is_default AND is_active"),
            sqlite_where=text("is_default = 1 AND is_active = 1"),
        ),
        Index("ix_workflow_definitions_type_active", "workflow_type", "is_active"),
    )

    workflow_type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    definition: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[str] = mapped_column(String(20), default="1.0.0", nullable=False)
    checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<WorkflowDefinition {self.id} {self.workflow_type}/{self.name} "
            f"default={self.is_default} active={self.is_active}>"
        )
