"""
Typed exception hierarchy for the workflow kernel.

The engine itself never raises across its boundary: transition validation,
execution and SLA checks return typed results (see
``ticketflow_kernel.domain.outcomes``).  The exceptions below belong to
the persistence and authoring layer -- definition CRUD, approval records,
ticket storage -- where a failed write has no sensible result value.

Hierarchy::

    TicketflowError (base)
    |
    +-- WorkflowDefinitionError
    |   +-- WorkflowDefinitionNotFoundError
    |   +-- InvalidWorkflowDefinitionError
    |   +-- DefaultWorkflowRequiredError
    |
    +-- TicketError
    |   +-- TicketNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ApprovalError
        +-- ApprovalRecordNotFoundError
        +-- ApprovalAlreadyResolvedError

Every class carries a ``code`` class attribute (machine-readable, API-safe)
and keeps its context as attributes rather than only in the message.

    try:
        service.deactivate(workflow_id, actor="ops@example.com")
    except DefaultWorkflowRequiredError as e:
        api_response(400, code=e.code, workflow_type=e.workflow_type)
"""


class TicketflowError(Exception):
    """Base exception for all ticketflow errors."""

    code: str = "TICKETFLOW_ERROR"


# Workflow definition exceptions


class WorkflowDefinitionError(TicketflowError):
    """Base exception for workflow definition errors."""

    code: str = "WORKFLOW_DEFINITION_ERROR"


class WorkflowDefinitionNotFoundError(WorkflowDefinitionError):
    """Workflow definition with given id does not exist."""

    code: str = "WORKFLOW_DEFINITION_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow definition not found: {workflow_id}")


class InvalidWorkflowDefinitionError(WorkflowDefinitionError):
    """Workflow document failed authoring-time validation."""

    code: str = "INVALID_WORKFLOW_DEFINITION"

    def __init__(self, workflow_name: str, errors: list[str]):
        self.workflow_name = workflow_name
        self.errors = list(errors)
        super().__init__(
            f"Workflow '{workflow_name}' is invalid: "
            + "; ".join(self.errors)
        )


class DefaultWorkflowRequiredError(WorkflowDefinitionError):
    """
    A default workflow cannot be deactivated.

    Another definition must be made the default for the type first.
    """

    code: str = "DEFAULT_WORKFLOW_REQUIRED"

    def __init__(self, workflow_id: str, workflow_type: str):
        self.workflow_id = workflow_id
        self.workflow_type = workflow_type
        super().__init__(
            f"Cannot deactivate default workflow {workflow_id} for type "
            f"'{workflow_type}'. Set another workflow as default first."
        )


# Ticket exceptions


class TicketError(TicketflowError):
    """Base exception for ticket storage errors."""

    code: str = "TICKET_ERROR"


class TicketNotFoundError(TicketError):
    """Ticket with given id does not exist."""

    code: str = "TICKET_NOT_FOUND"

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket not found: {ticket_id}")


# Concurrency exceptions


class ConcurrencyError(TicketflowError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Stale write rejected by the version check."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"version {expected_version} is no longer current"
        )


# Approval exceptions


class ApprovalError(TicketflowError):
    """Base exception for approval record errors."""

    code: str = "APPROVAL_ERROR"


class ApprovalRecordNotFoundError(ApprovalError):
    """Approval record with given id does not exist."""

    code: str = "APPROVAL_RECORD_NOT_FOUND"

    def __init__(self, approval_id: str):
        self.approval_id = approval_id
        super().__init__(f"Approval record not found: {approval_id}")


class ApprovalAlreadyResolvedError(ApprovalError):
    """Decision attempted on an approval that is no longer pending."""

    code: str = "APPROVAL_ALREADY_RESOLVED"

    def __init__(self, approval_id: str, status: str):
        self.approval_id = approval_id
        self.status = status
        super().__init__(
            f"Approval {approval_id} has already been {status.lower()}"
        )
