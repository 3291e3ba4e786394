"""Kernel services: SQLAlchemy-backed collaborators for the engine."""

from ticketflow_kernel.services.approval_service import ApprovalRecordService
from ticketflow_kernel.services.ticket_store import SqlTicketStore

__all__ = [
    "ApprovalRecordService",
    "SqlTicketStore",
]
