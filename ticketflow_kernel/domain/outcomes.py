"""
Typed results returned across the engine boundary.

The engine is a decision/computation layer: every expected failure is a
``WorkflowErrorKind`` on a result object, never an exception.  Callers
branch on ``result.error`` and map user-facing kinds to 400-class
responses; operator faults (``is_operator_fault``) go to logs/alerts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ticketflow_kernel.domain.effects import Effect
from ticketflow_kernel.domain.ticket import TicketSnapshot


class WorkflowErrorKind(str, Enum):
    WORKFLOW_NOT_FOUND = "WORKFLOW_NOT_FOUND"
    NO_SUCH_TRANSITION = "NO_SUCH_TRANSITION"
    TERMINAL_STAGE = "TERMINAL_STAGE"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONDITIONS_NOT_MET = "CONDITIONS_NOT_MET"
    COMMENT_REQUIRED = "COMMENT_REQUIRED"
    APPROVAL_PENDING = "APPROVAL_PENDING"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    AUTO_TRANSITION_LOOP_DETECTED = "AUTO_TRANSITION_LOOP_DETECTED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    @property
    def is_operator_fault(self) -> bool:
        """Authoring defects, not user errors."""
        return self in _OPERATOR_FAULTS


_OPERATOR_FAULTS = frozenset({
    WorkflowErrorKind.CONFIGURATION_ERROR,
    WorkflowErrorKind.AUTO_TRANSITION_LOOP_DETECTED,
})


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking one transition request without committing it."""

    ok: bool
    transition_id: str
    error: WorkflowErrorKind | None = None
    reason: str = ""

    @classmethod
    def allowed(cls, transition_id: str) -> ValidationResult:
        return cls(ok=True, transition_id=transition_id, reason="Transition allowed")

    @classmethod
    def denied(
        cls, transition_id: str, error: WorkflowErrorKind, reason: str,
    ) -> ValidationResult:
        return cls(ok=False, transition_id=transition_id, error=error, reason=reason)


@dataclass(frozen=True)
class TransitionResult:
    """Result of ``apply_transition`` / ``start_ticket`` / manual actions.

    On success ``ticket`` is the new snapshot and ``effects`` is everything
    the caller must apply.  On failure ``ticket`` is the caller's original
    snapshot (unchanged) and ``effects`` is empty; nothing was committed.
    ``last_entered_stage_id`` is diagnostic only: for a runaway rule loop
    it names the last stage the engine entered before giving up.
    """

    success: bool
    ticket: TicketSnapshot | None = None
    effects: tuple[Effect, ...] = ()
    error: WorkflowErrorKind | None = None
    reason: str = ""
    auto_transitions: int = 0
    last_entered_stage_id: str | None = None

    @property
    def new_stage_id(self) -> str | None:
        return self.ticket.current_stage_id if self.success and self.ticket else None


class SlaStatus(str, Enum):
    """SLA state; ordered ON_TRACK < WARNING < BREACHED.

    The comparisons are defined explicitly because the inherited ``str``
    ones would order the values alphabetically.
    """

    ON_TRACK = "on_track"
    WARNING = "warning"
    BREACHED = "breached"

    @property
    def rank(self) -> int:
        return _SLA_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SlaStatus):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SlaStatus):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SlaStatus):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SlaStatus):
            return NotImplemented
        return self.rank >= other.rank


_SLA_RANK = {
    SlaStatus.ON_TRACK: 0,
    SlaStatus.WARNING: 1,
    SlaStatus.BREACHED: 2,
}


@dataclass(frozen=True)
class SlaScanEntry:
    ticket_id: str
    stage_id: str
    status: SlaStatus
    elapsed_fraction: float
    due_at: datetime
