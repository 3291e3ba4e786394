"""Tests for the kernel exception hierarchy."""

import pytest

from ticketflow_kernel.exceptions import (
    ApprovalAlreadyResolvedError,
    ApprovalError,
    ApprovalRecordNotFoundError,
    ConcurrencyError,
    DefaultWorkflowRequiredError,
    InvalidWorkflowDefinitionError,
    OptimisticLockError,
    TicketError,
    TicketflowError,
    TicketNotFoundError,
    WorkflowDefinitionError,
    WorkflowDefinitionNotFoundError,
)


@pytest.mark.parametrize(
    "exc,parent,code",
    [
        (WorkflowDefinitionNotFoundError("wf-1"), WorkflowDefinitionError, "WORKFLOW_DEFINITION_NOT_FOUND"),
        (InvalidWorkflowDefinitionError("wf", ["x"]), WorkflowDefinitionError, "INVALID_WORKFLOW_DEFINITION"),
        (DefaultWorkflowRequiredError("wf-1", "request"), WorkflowDefinitionError, "DEFAULT_WORKFLOW_REQUIRED"),
        (TicketNotFoundError("t-1"), TicketError, "TICKET_NOT_FOUND"),
        (OptimisticLockError("Ticket", "t-1", 2), ConcurrencyError, "OPTIMISTIC_LOCK_CONFLICT"),
        (ApprovalRecordNotFoundError("a-1"), ApprovalError, "APPROVAL_RECORD_NOT_FOUND"),
        (ApprovalAlreadyResolvedError("a-1", "approved"), ApprovalError, "APPROVAL_ALREADY_RESOLVED"),
    ],
)
def test_hierarchy_and_codes(exc, parent, code):
    assert isinstance(exc, parent)
    assert isinstance(exc, TicketflowError)
    assert exc.code == code


def test_invalid_definition_lists_every_error():
    exc = InvalidWorkflowDefinitionError("Broken", ["no initial stage", "dangling transition"])
    assert exc.errors == ["no initial stage", "dangling transition"]
    assert "no initial stage; dangling transition" in str(exc)


def test_default_required_message_names_type():
    exc = DefaultWorkflowRequiredError("wf-1", "incident")
    assert exc.workflow_type == "incident"
    assert "Set another workflow as default first" in str(exc)
