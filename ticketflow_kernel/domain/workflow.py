"""
Canonical workflow types (``ticketflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the ticket lifecycle state machine: stages,
transitions, conditions, actions, automation rules, stage notifications
and SLA settings, plus the versioned ``WorkflowDefinition`` envelope that
binds a body to a ticket type.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``models/``, or outer layers.

Invariants enforced
-------------------
* Action ``config`` is a typed value whose class is fully determined by
  the action ``type`` (one config class per ``ActionType``).
* Rules are evaluated in ascending ``priority``; ties keep declaration
  order.
* A ``final`` stage is terminal by construction; nothing here lets a
  definition override that.

Structural invariants that depend on the whole document (one initial
stage, reachable final stage, references to existing stages) are checked
at authoring time by ``ticketflow_config.validator``; the engine refuses
individual illegal moves at runtime instead of refusing a definition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Union


class WorkflowType(str, Enum):
    """Ticket families that own a workflow."""

    INCIDENT = "incident"
    REQUEST = "request"
    CHANGE = "change"
    CMDB = "cmdb"
    INTEGRATION = "integration"


class StageType(str, Enum):
    INITIAL = "initial"
    INTERMEDIATE = "intermediate"
    FINAL = "final"


class ActionType(str, Enum):
    STATUS_CHANGE = "status_change"
    ASSIGNMENT = "assignment"
    NOTIFICATION = "notification"
    FIELD_UPDATE = "field_update"
    INTEGRATION = "integration"


class ActionTrigger(str, Enum):
    ON_ENTER = "on_enter"
    ON_EXIT = "on_exit"
    MANUAL = "manual"


class NotificationTrigger(str, Enum):
    ON_ENTER = "on_enter"
    ON_EXIT = "on_exit"
    SLA_WARNING = "sla_warning"
    SLA_BREACH = "sla_breach"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    IN = "in"


# =========================================================================
# Conditions
# =========================================================================


@dataclass(frozen=True)
class Condition:
    """A single comparison against a dot-path into the ticket fields.

    ``operator`` is kept as the raw string from the document so that an
    unknown operator survives parsing and evaluates to ``False`` instead
    of failing the whole definition.
    """

    field: str
    operator: str
    value: Any = None


# =========================================================================
# Action configs -- one class per ActionType
# =========================================================================


@dataclass(frozen=True)
class StatusChangeConfig:
    to_stage_id: str
    reason: str = ""


@dataclass(frozen=True)
class AssignmentConfig:
    assigned_to: str | None = None
    assignment_group: str | None = None


@dataclass(frozen=True)
class NotificationConfig:
    recipient: str
    template: str


@dataclass(frozen=True)
class FieldUpdateConfig:
    field: str
    value: Any = None


@dataclass(frozen=True)
class IntegrationConfig:
    """Opaque settings forwarded to the integration executor untouched."""

    settings: Mapping[str, Any] = field(default_factory=dict)


ActionConfig = Union[
    StatusChangeConfig,
    AssignmentConfig,
    NotificationConfig,
    FieldUpdateConfig,
    IntegrationConfig,
]

ACTION_CONFIG_TYPES: dict[ActionType, type] = {
    ActionType.STATUS_CHANGE: StatusChangeConfig,
    ActionType.ASSIGNMENT: AssignmentConfig,
    ActionType.NOTIFICATION: NotificationConfig,
    ActionType.FIELD_UPDATE: FieldUpdateConfig,
    ActionType.INTEGRATION: IntegrationConfig,
}


@dataclass(frozen=True)
class Action:
    """An automated step attached to a stage or a rule."""

    id: str
    type: ActionType
    trigger: ActionTrigger
    config: ActionConfig

    def __post_init__(self) -> None:
        expected = ACTION_CONFIG_TYPES[self.type]
        if not isinstance(self.config, expected):
            raise TypeError(
                f"Action '{self.id}' of type {self.type.value} requires "
                f"{expected.__name__}, got {type(self.config).__name__}"
            )


# =========================================================================
# Stages, transitions, rules
# =========================================================================


@dataclass(frozen=True)
class Notification:
    """A stage-level notification declaration (recipient role + template)."""

    recipient: str
    trigger: NotificationTrigger
    template: str


@dataclass(frozen=True)
class SlaPolicy:
    duration_hours: float
    warning_threshold_percent: float = 80.0


@dataclass(frozen=True)
class Stage:
    """A named state in a ticket's lifecycle.

    ``order``, ``color`` and ``icon`` are display metadata only; they play
    no part in transition legality.
    """

    id: str
    name: str
    type: StageType
    order: int = 0
    actions: tuple[Action, ...] = ()
    notifications: tuple[Notification, ...] = ()
    sla: SlaPolicy | None = None
    color: str | None = None
    icon: str | None = None

    @property
    def is_final(self) -> bool:
        return self.type == StageType.FINAL

    def actions_for(self, trigger: ActionTrigger) -> tuple[Action, ...]:
        return tuple(a for a in self.actions if a.trigger == trigger)

    def notifications_for(self, trigger: NotificationTrigger) -> tuple[Notification, ...]:
        return tuple(n for n in self.notifications if n.trigger == trigger)


@dataclass(frozen=True)
class Transition:
    """A permitted edge between two stages.

    ``conditions`` are ANDed; ``required_roles`` is any-of (empty means
    any actor).  Self-loops are allowed.
    """

    id: str
    from_stage_id: str
    to_stage_id: str
    label: str = ""
    conditions: tuple[Condition, ...] = ()
    required_roles: tuple[str, ...] = ()
    requires_comment: bool = False
    requires_approval: bool = False
    approval_roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class Rule:
    """Stateless automation: conditions (ANDed) that fire actions.

    Lower ``priority`` is evaluated first.
    """

    id: str
    name: str
    conditions: tuple[Condition, ...] = ()
    actions: tuple[Action, ...] = ()
    priority: int = 0
    description: str = ""


@dataclass(frozen=True)
class WorkflowDefinitionBody:
    """The executable part of a workflow document."""

    initial_status: str
    stages: tuple[Stage, ...]
    transitions: tuple[Transition, ...] = ()
    rules: tuple[Rule, ...] = ()

    def stage(self, stage_id: str) -> Stage | None:
        for s in self.stages:
            if s.id == stage_id:
                return s
        return None

    def initial_stage(self) -> Stage | None:
        """Resolve ``initial_status`` by stage id, then by stage name.

        Older seeded documents store the display name ("Pending Approval")
        instead of the id.
        """
        by_id = self.stage(self.initial_status)
        if by_id is not None:
            return by_id
        for s in self.stages:
            if s.name == self.initial_status:
                return s
        return None

    def transition(self, transition_id: str) -> Transition | None:
        for t in self.transitions:
            if t.id == transition_id:
                return t
        return None

    def transitions_from(self, stage_id: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_stage_id == stage_id)

    def rules_by_priority(self) -> tuple[Rule, ...]:
        # sorted() is stable, so equal priorities keep declaration order
        return tuple(sorted(self.rules, key=lambda r: r.priority))

    @property
    def final_stage_ids(self) -> frozenset[str]:
        return frozenset(s.id for s in self.stages if s.is_final)


@dataclass(frozen=True)
class WorkflowDefinition:
    """A named, versioned workflow document bound to a ticket type.

    Never hard-deleted: retired by clearing ``is_active``.
    """

    id: str
    workflow_type: WorkflowType
    name: str
    definition: WorkflowDefinitionBody
    description: str = ""
    is_default: bool = False
    is_active: bool = True
    version: str = "1.0.0"
    created_by: str = "system"
    created_date: datetime | None = None
    modified_by: str = "system"
    modified_date: datetime | None = None
