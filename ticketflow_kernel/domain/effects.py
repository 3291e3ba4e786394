"""
Effect types (``ticketflow_kernel.domain.effects``).

An effect is a side-effect *request* produced by the engine.  The engine
never performs I/O; the caller (or an external executor) writes stage
changes and field updates back to the ticket store, sends notifications
and calls integrations.

``Effect`` is a closed union of four frozen dataclasses.  Consumers
dispatch on the concrete class (or on the ``kind`` class attribute when
the effect has been serialized).

Every effect records ``origin`` -- ``"transition:<id>"``,
``"action:<id>"``, ``"rule:<id>"``, ``"stage:<id>"`` or ``"sla:<stage>"``
-- so a write-back or notification can be traced to the definition entry
that asked for it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Union


@dataclass(frozen=True)
class StageChangeRequest:
    kind: ClassVar[str] = "stage_change"

    to_stage_id: str
    from_stage_id: str | None = None
    reason: str = ""
    origin: str = ""


@dataclass(frozen=True)
class FieldUpdate:
    kind: ClassVar[str] = "field_update"

    field: str
    value: Any = None
    origin: str = ""


@dataclass(frozen=True)
class NotificationIntent:
    """Who to tell and with which template.

    ``recipient_resolution`` is a role-style token (``requester``,
    ``approver``, ``assignee``...) resolved to addresses by the dispatcher.
    """

    kind: ClassVar[str] = "notification"

    recipient_resolution: str
    template: str
    ticket_ref: str
    origin: str = ""


@dataclass(frozen=True)
class IntegrationCallIntent:
    kind: ClassVar[str] = "integration_call"

    config: Mapping[str, Any] = field(default_factory=dict)
    ticket_ref: str = ""
    origin: str = ""


Effect = Union[StageChangeRequest, FieldUpdate, NotificationIntent, IntegrationCallIntent]


def effect_to_dict(effect: Effect) -> dict[str, Any]:
    """Serialize an effect for a queue or an API response."""
    if isinstance(effect, StageChangeRequest):
        body: dict[str, Any] = {
            "toStageId": effect.to_stage_id,
            "fromStageId": effect.from_stage_id,
            "reason": effect.reason,
        }
    elif isinstance(effect, FieldUpdate):
        body = {"field": effect.field, "value": effect.value}
    elif isinstance(effect, NotificationIntent):
        body = {
            "recipientResolution": effect.recipient_resolution,
            "template": effect.template,
            "ticketRef": effect.ticket_ref,
        }
    elif isinstance(effect, IntegrationCallIntent):
        body = {"config": dict(effect.config), "ticketRef": effect.ticket_ref}
    else:
        raise TypeError(f"Not an effect: {effect!r}")
    return {"kind": effect.kind, "origin": effect.origin, **body}
