"""
Module: ticketflow_kernel.models.workflow_definition_version
Responsibility: Retained copy of every published workflow document body.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (definition id, version).  Rows are written when a body
      is published and never updated, so a ticket pinned to a version
      keeps reading the body it started under.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow_kernel.db.base import Base, UUIDString


class WorkflowDefinitionVersionModel(Base):
    """Immutable published body of one workflow definition version."""

    __tablename__ = "workflow_definition_versions"

    __table_args__ = (
        UniqueConstraint(
            "workflow_definition_id", "version",
            name="uq_workflow_definition_versions_id_version",
        ),
    )

    workflow_definition_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_definitions.id"), nullable=False,
    )
    version: Mapped[str] = mapped_column(String(20), nullable=False)
    definition: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    published_by: Mapped[str] = mapped_column(String(200), nullable=False)
    published_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<WorkflowDefinitionVersion {self.workflow_definition_id} v{self.version}>"
