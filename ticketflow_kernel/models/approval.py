"""
Module: ticketflow_kernel.models.approval
Responsibility: ORM persistence for approval records.

Architecture position: Kernel > Models.  May import from db/base.py and domain/.

Invariants enforced:
    - DB check constraint limits status values.
    - Resolved records are not changed again (enforced by the service).
    - Covering index for the validator's has_approval lookup.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow_kernel.db.base import Base, as_utc
from ticketflow_kernel.domain.approval import ApprovalRecord, ApprovalStatus


class ApprovalRecordModel(Base):
    """Persistent approval record."""

    __tablename__ = "approval_records"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_approval_records_valid_status",
        ),
        Index(
            "ix_approval_records_ticket_status",
            "ticket_ref", "status", "approver_role",
        ),
    )

    ticket_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    approver_role: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    requested_by: Mapped[str] = mapped_column(String(200), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(nullable=False)
    approver_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    comment: Mapped[str] = mapped_column(Text, default="", nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ApprovalRecord {self.id} ticket={self.ticket_ref} "
            f"role={self.approver_role} status={self.status}>"
        )

    def to_dto(self) -> ApprovalRecord:
        """Convert ORM model to frozen domain DTO."""
        return ApprovalRecord(
            approval_id=str(self.id),
            ticket_ref=self.ticket_ref,
            approver_role=self.approver_role,
            status=ApprovalStatus(self.status),
            requested_by=self.requested_by,
            requested_at=as_utc(self.requested_at),
            approver_id=self.approver_id,
            comment=self.comment,
            decided_at=as_utc(self.decided_at),
        )
