"""
Pluggable interfaces for the engine's external collaborators.

The executor calls these synchronously at well-defined points (definition
lookup before validation, approval lookup as the last validation step,
ticket load/save around a transition).  Production implementations live
in ``ticketflow_kernel.services``; tests use in-memory fakes.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from ticketflow_kernel.domain.ticket import TicketSnapshot
from ticketflow_kernel.domain.workflow import WorkflowDefinition


class WorkflowDefinitionStore(Protocol):
    """Read side of the workflow document store."""

    def get_definition(self, workflow_type: str, workflow_id: str) -> WorkflowDefinition | None:
        """Return the definition with this id (active or not), or None."""
        ...

    def get_default(self, workflow_type: str) -> WorkflowDefinition | None:
        """Return the active default definition for a type, or None."""
        ...

    def get_definition_version(
        self, workflow_type: str, workflow_id: str, version: str,
    ) -> WorkflowDefinition | None:
        """Return the definition with the body published as ``version``, or None.

        Envelope flags (active, default) are the current ones; only the
        body and version come from the retained copy.
        """
        ...

    def list_active(self, workflow_type: str | None = None) -> list[WorkflowDefinition]:
        ...


class ApprovalProvider(Protocol):
    def has_approval(self, ticket_ref: str, roles: Iterable[str]) -> bool:
        """True when an approved record exists for the ticket from any of ``roles``."""
        ...


class TicketStore(Protocol):
    def create(self, snapshot: TicketSnapshot, *, in_final_stage: bool = False) -> TicketSnapshot:
        ...

    def load(self, ticket_id: str) -> TicketSnapshot:
        """Raises ``TicketNotFoundError`` for an unknown id."""
        ...

    def save(
        self,
        snapshot: TicketSnapshot,
        expected_version: int,
        *,
        in_final_stage: bool = False,
    ) -> TicketSnapshot:
        """Persist ``snapshot`` if the stored version still equals ``expected_version``.

        Returns the snapshot with its bumped version.  Raises
        ``OptimisticLockError`` on a stale write.  ``in_final_stage``
        drops the ticket from ``list_open``.
        """
        ...

    def list_open(self) -> list[TicketSnapshot]:
        """Tickets whose current stage is not final."""
        ...
