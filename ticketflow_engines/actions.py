"""
ticketflow_engines.actions -- Action dispatcher.

Responsibility:
    Resolve a workflow action into the effects it asks for.  The
    dispatcher decides *what should happen*; it never sends, writes or
    calls anything.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Failure modes:
    - A ``status_change`` to a stage the definition does not have is
      still dispatched; the executor rejects it at apply time as a
      configuration error so the ticket stays where it is.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ticketflow_kernel.domain.effects import (
    Effect,
    FieldUpdate,
    IntegrationCallIntent,
    NotificationIntent,
    StageChangeRequest,
)
from ticketflow_kernel.domain.ticket import TicketSnapshot
from ticketflow_kernel.domain.workflow import (
    Action,
    AssignmentConfig,
    FieldUpdateConfig,
    IntegrationConfig,
    Notification,
    NotificationConfig,
    StatusChangeConfig,
)

ASSIGNED_TO_FIELD = "assigned_to"
ASSIGNMENT_GROUP_FIELD = "assignment_group"


@dataclass(frozen=True)
class DispatchContext:
    """Where an action is being run from.

    ``origin`` overrides the default ``action:<id>`` tag, e.g. with
    ``rule:<id>`` when a rule fires the action.
    """

    origin: str | None = None
    actor_id: str | None = None


def dispatch(
    action: Action,
    ticket: TicketSnapshot,
    context: DispatchContext | None = None,
) -> list[Effect]:
    """Return the effects requested by ``action`` for ``ticket``."""
    origin = (context.origin if context and context.origin else None) or f"action:{action.id}"
    config = action.config

    if isinstance(config, StatusChangeConfig):
        return [
            StageChangeRequest(
                to_stage_id=config.to_stage_id,
                from_stage_id=ticket.current_stage_id,
                reason=config.reason,
                origin=origin,
            )
        ]

    if isinstance(config, FieldUpdateConfig):
        return [FieldUpdate(field=config.field, value=config.value, origin=origin)]

    if isinstance(config, AssignmentConfig):
        effects: list[Effect] = []
        if config.assigned_to is not None:
            effects.append(
                FieldUpdate(field=ASSIGNED_TO_FIELD, value=config.assigned_to, origin=origin)
            )
        if config.assignment_group is not None:
            effects.append(
                FieldUpdate(field=ASSIGNMENT_GROUP_FIELD, value=config.assignment_group, origin=origin)
            )
        return effects

    if isinstance(config, NotificationConfig):
        return [
            NotificationIntent(
                recipient_resolution=config.recipient,
                template=config.template,
                ticket_ref=ticket.ticket_id,
                origin=origin,
            )
        ]

    if isinstance(config, IntegrationConfig):
        return [
            IntegrationCallIntent(
                config=dict(config.settings),
                ticket_ref=ticket.ticket_id,
                origin=origin,
            )
        ]

    raise TypeError(f"Unhandled action config {type(config).__name__}")


def dispatch_all(
    actions: Iterable[Action],
    ticket: TicketSnapshot,
    context: DispatchContext | None = None,
) -> list[Effect]:
    effects: list[Effect] = []
    for action in actions:
        effects.extend(dispatch(action, ticket, context))
    return effects


def notification_intents(
    notifications: Iterable[Notification],
    ticket: TicketSnapshot,
    origin: str,
) -> list[NotificationIntent]:
    """Intents for stage-level notification declarations."""
    return [
        NotificationIntent(
            recipient_resolution=n.recipient,
            template=n.template,
            ticket_ref=ticket.ticket_id,
            origin=origin,
        )
        for n in notifications
    ]
