"""
ticketflow_kernel.services.approval_service -- Approval record lifecycle.

Responsibility:
    Create approval records for a ticket, record the one decision each
    record gets, and answer the transition validator's question "is there
    an approved record from one of these roles?".

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Implements the ``ApprovalProvider`` protocol.

Invariants enforced:
    - A record is decided at most once (pending -> approved | rejected).
    - ``has_approval`` only counts records in ``approved`` status.

Failure modes:
    - ApprovalRecordNotFoundError if the id is unknown.
    - ApprovalAlreadyResolvedError on a second decision.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ticketflow_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRecord,
    ApprovalStatus,
    TERMINAL_APPROVAL_STATUSES,
)
from ticketflow_kernel.domain.clock import Clock, SystemClock
from ticketflow_kernel.exceptions import (
    ApprovalAlreadyResolvedError,
    ApprovalRecordNotFoundError,
)
from ticketflow_kernel.logging_config import get_logger
from ticketflow_kernel.models.approval import ApprovalRecordModel
from ticketflow_kernel.services.base import BaseService, parse_uuid

logger = get_logger("kernel.approval_service")

_DECISION_STATUS = {
    ApprovalDecision.APPROVE: ApprovalStatus.APPROVED,
    ApprovalDecision.REJECT: ApprovalStatus.REJECTED,
}


class ApprovalRecordService(BaseService):
    """Manages approval records and serves approval lookups."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        super().__init__(session)
        self._clock = clock or SystemClock()

    def request_approval(
        self,
        ticket_ref: str,
        approver_role: str,
        requested_by: str,
    ) -> ApprovalRecord:
        """Open a pending approval record for ``ticket_ref``."""
        model = ApprovalRecordModel(
            ticket_ref=ticket_ref,
            approver_role=approver_role,
            status=ApprovalStatus.PENDING.value,
            requested_by=requested_by,
            requested_at=self._clock.now(),
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "approval_requested",
            extra={
                "approval_id": str(model.id),
                "ticket_ref": ticket_ref,
                "approver_role": approver_role,
            },
        )
        return model.to_dto()

    def record_decision(
        self,
        approval_id: str,
        approver_id: str,
        decision: ApprovalDecision,
        comment: str = "",
    ) -> ApprovalRecord:
        """Approve or reject a pending record."""
        model = self._load_model(approval_id)
        current = ApprovalStatus(model.status)
        if current in TERMINAL_APPROVAL_STATUSES:
            raise ApprovalAlreadyResolvedError(approval_id, current.value)

        new_status = _DECISION_STATUS[decision]
        model.status = new_status.value
        model.approver_id = approver_id
        model.comment = comment
        model.decided_at = self._clock.now()
        self.session.flush()

        logger.info(
            "approval_decision_recorded",
            extra={
                "approval_id": approval_id,
                "ticket_ref": model.ticket_ref,
                "approver_id": approver_id,
                "decision": decision.value,
                "new_status": new_status.value,
            },
        )
        return model.to_dto()

    def get_record(self, approval_id: str) -> ApprovalRecord:
        return self._load_model(approval_id).to_dto()

    def list_for_ticket(self, ticket_ref: str) -> list[ApprovalRecord]:
        models = self.session.execute(
            select(ApprovalRecordModel)
            .where(ApprovalRecordModel.ticket_ref == ticket_ref)
            .order_by(ApprovalRecordModel.requested_at)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def has_approval(self, ticket_ref: str, roles: Iterable[str]) -> bool:
        """True when an approved record from any of ``roles`` exists.

        An empty ``roles`` accepts an approval from any role.
        """
        query = select(ApprovalRecordModel.id).where(
            ApprovalRecordModel.ticket_ref == ticket_ref,
            ApprovalRecordModel.status == ApprovalStatus.APPROVED.value,
        )
        role_list = list(roles)
        if role_list:
            query = query.where(ApprovalRecordModel.approver_role.in_(role_list))
        return self.session.execute(query.limit(1)).first() is not None

    def _load_model(self, approval_id: str) -> ApprovalRecordModel:
        key = parse_uuid(approval_id)
        model = self.session.get(ApprovalRecordModel, key) if key is not None else None
        if model is None:
            raise ApprovalRecordNotFoundError(approval_id)
        return model
