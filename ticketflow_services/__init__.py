"""
ticketflow_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure engines: the workflow executor,
    the SQLAlchemy-backed definition store, persisted ticket transitions
    and the periodic SLA sweep.  This is the only layer that holds
    database sessions or reads the wall clock by default.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        ticketflow_services/ -> ticketflow_engines/  (allowed)
        ticketflow_services/ -> ticketflow_kernel/   (allowed)
        ticketflow_services/ -> ticketflow_config/   (allowed)
        ticketflow_engines/  -> ticketflow_services/ (FORBIDDEN)
        ticketflow_kernel/   -> ticketflow_services/ (FORBIDDEN)
"""

from ticketflow_services.definition_service import WorkflowDefinitionService
from ticketflow_services.sla_monitor import SlaMonitor, SlaScanReport
from ticketflow_services.ticket_workflow_service import TicketWorkflowService
from ticketflow_services.workflow_executor import (
    AvailableTransition,
    WorkflowExecutor,
    resolve_ticket_definition,
)

__all__ = [
    "AvailableTransition",
    "SlaMonitor",
    "SlaScanReport",
    "TicketWorkflowService",
    "WorkflowDefinitionService",
    "WorkflowExecutor",
    "resolve_ticket_definition",
]
