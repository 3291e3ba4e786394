"""
ticketflow_engines.transitions -- Transition validator.

Responsibility:
    Decide whether a requested transition is legal for a ticket, an actor
    and the supplied metadata.  Returns a ``ValidationResult``; never
    raises for an illegal request.

Architecture position:
    Engines -- pure apart from the single call to the injected
    ``ApprovalProvider``, which is made last and only when the transition
    demands approval.

Check order (first failure wins):
    1. The current stage is not ``final``           -> TERMINAL_STAGE
    2. The transition exists and leaves the ticket's
       current stage                                -> NO_SUCH_TRANSITION
       (a current or target stage the definition does
       not have                                     -> CONFIGURATION_ERROR)
    3. Actor holds one of ``required_roles``        -> UNAUTHORIZED
    4. All transition conditions hold               -> CONDITIONS_NOT_MET
    5. A comment is supplied when required          -> COMMENT_REQUIRED
    6. An approval from ``approval_roles`` exists   -> APPROVAL_PENDING

Cheap structural checks run before role and condition checks, which run
before the comment and approval checks that may need extra I/O.  The
terminal-stage check runs first so that a final stage rejects every
request with the same kind, whatever transition id was asked for.
"""

from __future__ import annotations

from typing import Iterable

from ticketflow_engines.conditions import describe, first_failing
from ticketflow_kernel.domain.collaborators import ApprovalProvider
from ticketflow_kernel.domain.outcomes import ValidationResult, WorkflowErrorKind
from ticketflow_kernel.domain.ticket import TicketSnapshot, TransitionMetadata
from ticketflow_kernel.domain.workflow import Transition, WorkflowDefinitionBody
from ticketflow_kernel.logging_config import get_logger

logger = get_logger("engines.transitions")


def validate(
    definition: WorkflowDefinitionBody,
    ticket: TicketSnapshot,
    transition_id: str,
    actor_roles: Iterable[str],
    metadata: TransitionMetadata | None = None,
    approvals: ApprovalProvider | None = None,
) -> ValidationResult:
    """Validate one transition request.  See module docstring for the order."""
    current_stage_id = ticket.current_stage_id
    current = definition.stage(current_stage_id)
    if current is None:
        return ValidationResult.denied(
            transition_id,
            WorkflowErrorKind.CONFIGURATION_ERROR,
            f"Ticket is in stage '{current_stage_id}' which the workflow does not define",
        )

    if current.is_final:
        return ValidationResult.denied(
            transition_id,
            WorkflowErrorKind.TERMINAL_STAGE,
            f"Stage '{current_stage_id}' is final; no transitions leave it",
        )

    transition = definition.transition(transition_id)
    if transition is None or transition.from_stage_id != current_stage_id:
        return ValidationResult.denied(
            transition_id,
            WorkflowErrorKind.NO_SUCH_TRANSITION,
            f"No transition '{transition_id}' from stage '{current_stage_id}'",
        )

    if definition.stage(transition.to_stage_id) is None:
        return ValidationResult.denied(
            transition_id,
            WorkflowErrorKind.CONFIGURATION_ERROR,
            f"Transition '{transition_id}' targets unknown stage '{transition.to_stage_id}'",
        )

    roles = frozenset(actor_roles)
    if transition.required_roles and roles.isdisjoint(transition.required_roles):
        return ValidationResult.denied(
            transition_id,
            WorkflowErrorKind.UNAUTHORIZED,
            f"Transition '{transition_id}' requires one of roles "
            f"{sorted(transition.required_roles)}",
        )

    failing = first_failing(transition.conditions, ticket.fields)
    if failing is not None:
        return ValidationResult.denied(
            transition_id,
            WorkflowErrorKind.CONDITIONS_NOT_MET,
            f"Condition not met: {describe(failing)}",
        )

    meta = metadata or TransitionMetadata()
    if transition.requires_comment and not (meta.comment or "").strip():
        return ValidationResult.denied(
            transition_id,
            WorkflowErrorKind.COMMENT_REQUIRED,
            f"Transition '{transition_id}' requires a comment",
        )

    if transition.requires_approval and not _approval_granted(transition, ticket, approvals):
        return ValidationResult.denied(
            transition_id,
            WorkflowErrorKind.APPROVAL_PENDING,
            f"Transition '{transition_id}' awaits approval from "
            f"{sorted(transition.approval_roles) or 'any approver'}",
        )

    return ValidationResult.allowed(transition_id)


def _approval_granted(
    transition: Transition,
    ticket: TicketSnapshot,
    approvals: ApprovalProvider | None,
) -> bool:
    if approvals is None:
        return False
    try:
        return bool(approvals.has_approval(ticket.ticket_id, transition.approval_roles))
    except Exception as e:  # noqa: BLE001
        logger.warning(
            "approval_lookup_failed",
            extra={
                "transition_id": transition.id,
                "ticket_id": ticket.ticket_id,
                "error": str(e),
            },
        )
        return False
