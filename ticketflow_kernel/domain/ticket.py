"""
Ticket-side inputs to the engine: the ticket snapshot, the resolved
actor and the metadata supplied with a transition request.

``TicketSnapshot`` is immutable.  The executor derives new snapshots
(``with_stage`` / ``with_field``) while it works, so a failed call can
never leave the caller's snapshot half-updated.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping

from ticketflow_kernel.domain.workflow import WorkflowType


@dataclass(frozen=True)
class TicketSnapshot:
    """The engine's view of one ticket.

    ``workflow_definition_id`` (and the ``workflow_version`` it had) is
    pinned when the ticket enters its initial stage; later edits to the type's default workflow do not
    affect tickets already in flight.  ``version`` is the optimistic
    concurrency token of the backing record.
    """

    ticket_id: str
    ticket_type: WorkflowType
    current_stage_id: str
    stage_entered_at: datetime
    fields: Mapping[str, Any] = field(default_factory=dict)
    workflow_definition_id: str | None = None
    workflow_version: str | None = None
    version: int = 0

    def pinned_to(self, workflow_definition_id: str, workflow_version: str) -> TicketSnapshot:
        return replace(
            self,
            workflow_definition_id=workflow_definition_id,
            workflow_version=workflow_version,
        )

    def with_stage(self, stage_id: str, entered_at: datetime) -> TicketSnapshot:
        return replace(self, current_stage_id=stage_id, stage_entered_at=entered_at)

    def with_field(self, path: str, value: Any) -> TicketSnapshot:
        """Return a copy with ``path`` (dot-separated) set to ``value``.

        An existing key spelled exactly ``path`` is overwritten in place,
        matching how conditions read it.  Otherwise intermediate mappings
        are copied, never mutated; a non-mapping value in the way is
        replaced by a fresh dict.
        """
        if path in self.fields:
            return replace(self, fields={**self.fields, path: value})
        parts = path.split(".")
        return replace(self, fields=_set_path(self.fields, parts, value))


def _set_path(container: Mapping[str, Any], parts: list[str], value: Any) -> dict[str, Any]:
    updated = dict(container)
    head = parts[0]
    if len(parts) == 1:
        updated[head] = value
        return updated
    child = container.get(head)
    if not isinstance(child, Mapping):
        child = {}
    updated[head] = _set_path(child, parts[1:], value)
    return updated


@dataclass(frozen=True)
class Actor:
    """A resolved identity.  Role resolution happens upstream."""

    actor_id: str
    roles: frozenset[str] = frozenset()

    @classmethod
    def of(cls, actor_id: str, *roles: str) -> Actor:
        return cls(actor_id=actor_id, roles=frozenset(roles))


@dataclass(frozen=True)
class TransitionMetadata:
    comment: str = ""
    extra: Mapping[str, Any] = field(default_factory=dict)
