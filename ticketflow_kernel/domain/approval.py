"""
Approval records consulted by the transition validator.

An approval record says that someone holding ``approver_role`` approved
(or rejected) moving a ticket forward.  Records are created pending and
resolved exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


TERMINAL_APPROVAL_STATUSES = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
})


@dataclass(frozen=True)
class ApprovalRecord:
    approval_id: str
    ticket_ref: str
    approver_role: str
    status: ApprovalStatus
    requested_by: str
    requested_at: datetime
    approver_id: str | None = None
    comment: str = ""
    decided_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status in TERMINAL_APPROVAL_STATUSES
