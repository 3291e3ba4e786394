"""
ticketflow_services.ticket_workflow_service -- Persisted ticket transitions.

Responsibility:
    Load a ticket, run a workflow operation through ``WorkflowExecutor``
    and save the new snapshot with an optimistic concurrency check.

Architecture position:
    Services layer.  Wires the SQLAlchemy-backed collaborators (ticket
    store, definition store, approval records) into the executor for one
    session.  Flushes only; the caller commits.

Invariants enforced:
    - A write is accepted only if the ticket's stored version still
      matches the version the operation was computed from.  Of two
      concurrent transitions on one ticket, exactly one is persisted; the
      other gets CONCURRENT_MODIFICATION and nothing is written for it.
    - Effects other than the stage change and field updates (which are
      part of the saved snapshot) are returned to the caller, not
      executed.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable
from uuid import uuid4

from sqlalchemy.orm import Session

from ticketflow_config.settings import EngineSettings
from ticketflow_kernel.domain.clock import Clock, SystemClock
from ticketflow_kernel.domain.collaborators import TicketStore
from ticketflow_kernel.domain.outcomes import TransitionResult, WorkflowErrorKind
from ticketflow_kernel.domain.ticket import Actor, TicketSnapshot, TransitionMetadata
from ticketflow_kernel.domain.workflow import WorkflowType
from ticketflow_kernel.exceptions import OptimisticLockError
from ticketflow_kernel.logging_config import LogContext, get_logger
from ticketflow_kernel.services.approval_service import ApprovalRecordService
from ticketflow_kernel.services.ticket_store import SqlTicketStore
from ticketflow_services.definition_service import WorkflowDefinitionService
from ticketflow_services.workflow_executor import (
    DEFAULT_MAX_AUTO_TRANSITION_DEPTH,
    AvailableTransition,
    WorkflowExecutor,
)

logger = get_logger("services.ticket_workflow")


class TicketWorkflowService:
    """Load / execute / save for one session."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        max_auto_transition_depth: int = DEFAULT_MAX_AUTO_TRANSITION_DEPTH,
        outcome_sink: Callable[[dict], None] | None = None,
        store: TicketStore | None = None,
        executor: WorkflowExecutor | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._store = store or SqlTicketStore(session)
        self._executor = executor or WorkflowExecutor(
            definitions=WorkflowDefinitionService(session, self._clock),
            approvals=ApprovalRecordService(session, self._clock),
            clock=self._clock,
            max_auto_transition_depth=max_auto_transition_depth,
            outcome_sink=outcome_sink,
        )

    @classmethod
    def from_settings(
        cls,
        session: Session,
        settings: EngineSettings,
        clock: Clock | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> TicketWorkflowService:
        return cls(
            session,
            clock=clock,
            max_auto_transition_depth=settings.max_auto_transition_depth,
            outcome_sink=outcome_sink,
        )

    @property
    def executor(self) -> WorkflowExecutor:
        return self._executor

    def get_ticket(self, ticket_id: str) -> TicketSnapshot:
        return self._store.load(ticket_id)

    def start(
        self,
        ticket_type: WorkflowType | str,
        actor: Actor,
        fields: dict[str, Any] | None = None,
        ticket_id: str | None = None,
    ) -> TransitionResult:
        """Create a ticket bound to the type's default workflow."""
        ticket_id = ticket_id or str(uuid4())
        result = self._executor.start_ticket(ticket_type, ticket_id, actor, fields)
        if not result.success:
            return result
        stored = self._store.create(result.ticket, in_final_stage=self._in_final_stage(result.ticket))
        return replace(result, ticket=stored)

    def transition(
        self,
        ticket_id: str,
        transition_id: str,
        actor: Actor,
        metadata: TransitionMetadata | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Apply a human transition and persist the result.

        ``expected_version`` is the version the caller last read; when it
        is stale the request is refused before anything runs.

        Raises:
            TicketNotFoundError: unknown ticket id.
        """
        with LogContext.bind(ticket_id=ticket_id, actor_id=actor.actor_id):
            current = self._store.load(ticket_id)
            stale = self._stale(current, expected_version)
            if stale is not None:
                return stale
            result = self._executor.apply_transition(current, transition_id, actor, metadata)
            return self._persist(current, result)

    def run_manual_action(
        self,
        ticket_id: str,
        action_id: str,
        actor: Actor,
        expected_version: int | None = None,
    ) -> TransitionResult:
        with LogContext.bind(ticket_id=ticket_id, actor_id=actor.actor_id):
            current = self._store.load(ticket_id)
            stale = self._stale(current, expected_version)
            if stale is not None:
                return stale
            result = self._executor.execute_manual_action(current, action_id, actor)
            return self._persist(current, result)

    def available_transitions(
        self,
        ticket_id: str,
        actor: Actor,
        metadata: TransitionMetadata | None = None,
    ) -> list[AvailableTransition]:
        return self._executor.available_transitions(self._store.load(ticket_id), actor, metadata)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _persist(self, current: TicketSnapshot, result: TransitionResult) -> TransitionResult:
        if not result.success or result.ticket is None:
            return result
        try:
            saved = self._store.save(
                result.ticket,
                expected_version=current.version,
                in_final_stage=self._in_final_stage(result.ticket),
            )
        except OptimisticLockError as exc:
            logger.info(
                "ticket_transition_conflict",
                extra={"ticket_id": current.ticket_id, "expected_version": current.version},
            )
            return TransitionResult(
                success=False,
                ticket=current,
                error=WorkflowErrorKind.CONCURRENT_MODIFICATION,
                reason=str(exc),
            )
        return replace(result, ticket=saved)

    def _stale(self, current: TicketSnapshot, expected_version: int | None) -> TransitionResult | None:
        if expected_version is None or expected_version == current.version:
            return None
        logger.info(
            "ticket_transition_conflict",
            extra={
                "ticket_id": current.ticket_id,
                "expected_version": expected_version,
                "actual_version": current.version,
            },
        )
        return TransitionResult(
            success=False,
            ticket=current,
            error=WorkflowErrorKind.CONCURRENT_MODIFICATION,
            reason=(
                f"Ticket {current.ticket_id} is at version {current.version}, "
                f"not {expected_version}"
            ),
        )

    def _in_final_stage(self, ticket: TicketSnapshot) -> bool:
        workflow = self._executor.resolve_definition(ticket)
        if workflow is None:
            return False
        stage = workflow.definition.stage(ticket.current_stage_id)
        return stage is not None and stage.is_final
