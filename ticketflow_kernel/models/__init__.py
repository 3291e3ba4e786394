"""ORM models for the workflow kernel."""

from ticketflow_kernel.models.approval import ApprovalRecordModel
from ticketflow_kernel.models.ticket import TicketModel
from ticketflow_kernel.models.workflow_definition import WorkflowDefinitionModel
from ticketflow_kernel.models.workflow_definition_version import WorkflowDefinitionVersionModel

__all__ = [
    "ApprovalRecordModel",
    "TicketModel",
    "WorkflowDefinitionModel",
    "WorkflowDefinitionVersionModel",
]
