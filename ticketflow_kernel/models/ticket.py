"""
Module: ticketflow_kernel.models.ticket
Responsibility: ORM persistence for the workflow-relevant part of a ticket.

Architecture position: Kernel > Models.  May import from db/base.py and domain/.

Invariants enforced:
    - ``version`` is the optimistic concurrency token.  Every write is an
      ``UPDATE ... WHERE version = :expected`` issued by the ticket store;
      the ORM never bumps it on its own.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow_kernel.db.base import Base, as_utc
from ticketflow_kernel.domain.ticket import TicketSnapshot
from ticketflow_kernel.domain.workflow import WorkflowType


class TicketModel(Base):
    """Persistent ticket workflow state."""

    __tablename__ = "tickets"

    __table_args__ = (
        Index("ix_tickets_open", "is_final_stage", "ticket_type"),
    )

    ticket_type: Mapped[str] = mapped_column(String(50), nullable=False)
    current_stage_id: Mapped[str] = mapped_column(String(100), nullable=False)
    stage_entered_at: Mapped[datetime] = mapped_column(nullable=False)
    fields: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    workflow_definition_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    workflow_version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_final_stage: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Ticket {self.id} {self.ticket_type} stage={self.current_stage_id} v{self.version}>"

    def to_snapshot(self) -> TicketSnapshot:
        """Convert ORM row to the engine's frozen snapshot."""
        return TicketSnapshot(
            ticket_id=str(self.id),
            ticket_type=WorkflowType(self.ticket_type),
            current_stage_id=self.current_stage_id,
            stage_entered_at=as_utc(self.stage_entered_at),
            fields=dict(self.fields or {}),
            workflow_definition_id=self.workflow_definition_id,
            workflow_version=self.workflow_version,
            version=self.version,
        )
