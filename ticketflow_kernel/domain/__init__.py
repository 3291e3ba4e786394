"""
Pure domain layer.

This module contains immutable value objects for workflow definitions,
tickets, effects and engine outcomes, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (the Clock is injected)
- I/O
"""

from ticketflow_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRecord,
    ApprovalStatus,
)
from ticketflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ticketflow_kernel.domain.collaborators import (
    ApprovalProvider,
    TicketStore,
    WorkflowDefinitionStore,
)
from ticketflow_kernel.domain.effects import (
    Effect,
    FieldUpdate,
    IntegrationCallIntent,
    NotificationIntent,
    StageChangeRequest,
    effect_to_dict,
)
from ticketflow_kernel.domain.outcomes import (
    SlaScanEntry,
    SlaStatus,
    TransitionResult,
    ValidationResult,
    WorkflowErrorKind,
)
from ticketflow_kernel.domain.ticket import Actor, TicketSnapshot, TransitionMetadata
from ticketflow_kernel.domain.workflow import (
    Action,
    ActionTrigger,
    ActionType,
    AssignmentConfig,
    Condition,
    ConditionOperator,
    FieldUpdateConfig,
    IntegrationConfig,
    Notification,
    NotificationConfig,
    NotificationTrigger,
    Rule,
    SlaPolicy,
    Stage,
    StageType,
    StatusChangeConfig,
    Transition,
    WorkflowDefinition,
    WorkflowDefinitionBody,
    WorkflowType,
)

__all__ = [
    # Approvals
    "ApprovalDecision",
    "ApprovalRecord",
    "ApprovalStatus",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Collaborators
    "ApprovalProvider",
    "TicketStore",
    "WorkflowDefinitionStore",
    # Effects
    "Effect",
    "FieldUpdate",
    "IntegrationCallIntent",
    "NotificationIntent",
    "StageChangeRequest",
    "effect_to_dict",
    # Outcomes
    "SlaScanEntry",
    "SlaStatus",
    "TransitionResult",
    "ValidationResult",
    "WorkflowErrorKind",
    # Ticket
    "Actor",
    "TicketSnapshot",
    "TransitionMetadata",
    # Workflow model
    "Action",
    "ActionTrigger",
    "ActionType",
    "AssignmentConfig",
    "Condition",
    "ConditionOperator",
    "FieldUpdateConfig",
    "IntegrationConfig",
    "Notification",
    "NotificationConfig",
    "NotificationTrigger",
    "Rule",
    "SlaPolicy",
    "Stage",
    "StageType",
    "StatusChangeConfig",
    "Transition",
    "WorkflowDefinition",
    "WorkflowDefinitionBody",
    "WorkflowType",
]
