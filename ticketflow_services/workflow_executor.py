"""
ticketflow_services.workflow_executor -- Workflow execution orchestrator.

Responsibility:
    Apply a transition to a ticket snapshot: resolve the ticket's pinned
    workflow, validate the request, run on-exit and on-enter actions,
    run the rule pass under the new stage and follow rule-driven stage
    changes up to a fixed depth.  Returns the new snapshot plus every
    effect the caller must apply.

Architecture position:
    Services layer.  Thin coordinator -- delegates legality to
    ``ticketflow_engines.transitions``, action resolution to
    ``ticketflow_engines.actions`` and automation to
    ``ticketflow_engines.rules``.  Reads definitions and approvals through
    injected collaborators; never writes anything itself.

Invariants enforced:
    - No partial application: on any error the caller's snapshot is
      returned unchanged with no effects.
    - Termination: at most ``max_auto_transition_depth`` rule-driven stage
      changes per call, after which AUTO_TRANSITION_LOOP_DETECTED.
    - In-flight tickets keep the definition they were pinned to at start.
    - Identical notification intents are emitted once per call.

Every outcome of ``apply_transition``, ``start_ticket``,
``execute_manual_action`` and ``validate_only`` produces one
WORKFLOW_TRANSITION trace record.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from ticketflow_engines import rules
from ticketflow_engines.actions import DispatchContext, dispatch_all, notification_intents
from ticketflow_engines.transitions import validate
from ticketflow_kernel.domain.clock import Clock, SystemClock
from ticketflow_kernel.domain.collaborators import ApprovalProvider, WorkflowDefinitionStore
from ticketflow_kernel.domain.effects import (
    Effect,
    FieldUpdate,
    NotificationIntent,
    StageChangeRequest,
)
from ticketflow_kernel.domain.outcomes import (
    TransitionResult,
    ValidationResult,
    WorkflowErrorKind,
)
from ticketflow_kernel.domain.ticket import Actor, TicketSnapshot, TransitionMetadata
from ticketflow_kernel.domain.workflow import (
    Action,
    ActionTrigger,
    NotificationTrigger,
    Stage,
    Transition,
    WorkflowDefinition,
    WorkflowDefinitionBody,
    WorkflowType,
)
from ticketflow_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.workflow_executor")

DEFAULT_MAX_AUTO_TRANSITION_DEPTH = 10

# Trace message and outcome codes for structured logging and traceability
TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_ALLOWED = "allowed"


def _emit_workflow_trace(
    workflow_name: str | None,
    action: str,
    ticket_id: str,
    from_stage: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    ts: str,
    to_stage: str | None = None,
    error: WorkflowErrorKind | None = None,
    auto_transitions: int = 0,
    effect_count: int = 0,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured workflow transition record for traceability."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": ts,
        "workflow": workflow_name,
        "action": action,
        "ticket_id": ticket_id,
        "from_stage": from_stage,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
        "auto_transitions": auto_transitions,
        "effect_count": effect_count,
    }
    if to_stage is not None:
        record["to_stage"] = to_stage
    if error is not None:
        record["error_code"] = error.value
    record.update(LogContext.get_all())
    # LogRecord reserves "message"; use log msg as first arg, not in extra
    extra_for_log = {k: v for k, v in record.items() if k != "message"}
    level = logging.ERROR if error is not None and error.is_operator_fault else logging.INFO
    logger.log(level, "workflow_transition", extra=extra_for_log)
    record["message"] = "workflow_transition"
    if outcome_sink is not None:
        outcome_sink(record)


def _type_key(ticket_type: WorkflowType | str) -> str:
    return ticket_type.value if isinstance(ticket_type, Enum) else str(ticket_type)


def resolve_ticket_definition(
    definitions: WorkflowDefinitionStore, ticket: TicketSnapshot,
) -> WorkflowDefinition | None:
    """The definition a ticket is bound to, or None if missing/inactive.

    A ticket that was never pinned follows the type's current default.  A
    pinned ticket reads the body published under its pinned version, not
    the definition's latest body.
    """
    type_key = _type_key(ticket.ticket_type)
    if ticket.workflow_definition_id is None:
        return definitions.get_default(type_key)
    if ticket.workflow_version is not None:
        definition = definitions.get_definition_version(
            type_key, ticket.workflow_definition_id, ticket.workflow_version,
        )
    else:
        definition = definitions.get_definition(type_key, ticket.workflow_definition_id)
    if definition is None or not definition.is_active:
        return None
    return definition


@dataclass(frozen=True)
class AvailableTransition:
    """A transition out of the ticket's current stage and whether it is open."""

    transition: Transition
    result: ValidationResult

    @property
    def allowed(self) -> bool:
        return self.result.ok


@dataclass(frozen=True)
class _Settled:
    ticket: TicketSnapshot
    auto_transitions: int


@dataclass(frozen=True)
class _Failed:
    error: WorkflowErrorKind
    reason: str
    auto_transitions: int = 0
    last_entered_stage_id: str | None = None


class WorkflowExecutor:
    """Executes workflow transitions for ticket snapshots.

    The executor holds no per-ticket state and takes no locks; concurrent
    writers to one ticket are resolved by the ticket store's version
    check (see ``TicketWorkflowService``).
    """

    def __init__(
        self,
        definitions: WorkflowDefinitionStore,
        approvals: ApprovalProvider | None = None,
        clock: Clock | None = None,
        max_auto_transition_depth: int = DEFAULT_MAX_AUTO_TRANSITION_DEPTH,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._definitions = definitions
        self._approvals = approvals
        self._clock = clock or SystemClock()
        self._max_depth = max_auto_transition_depth
        self._outcome_sink = outcome_sink

    # ------------------------------------------------------------------
    # Definition resolution
    # ------------------------------------------------------------------

    def resolve_definition(self, ticket: TicketSnapshot) -> WorkflowDefinition | None:
        """The definition a ticket is bound to, or None if missing/inactive."""
        return resolve_ticket_definition(self._definitions, ticket)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def apply_transition(
        self,
        ticket: TicketSnapshot,
        transition_id: str,
        actor: Actor,
        metadata: TransitionMetadata | None = None,
    ) -> TransitionResult:
        """Validate and apply ``transition_id`` to ``ticket``.

        On success the result carries the settled snapshot (after any
        rule-driven auto transitions) and the accumulated effects.  The
        first effect is always the ``StageChangeRequest`` of the human
        transition.
        """
        t0 = time.monotonic()
        with LogContext.bind(ticket_id=ticket.ticket_id, actor_id=actor.actor_id):
            workflow = self.resolve_definition(ticket)
            if workflow is None:
                return self._finish(
                    t0, None, transition_id, ticket,
                    _Failed(WorkflowErrorKind.WORKFLOW_NOT_FOUND, self._not_found_reason(ticket)),
                )

            with LogContext.bind(workflow_id=workflow.id):
                body = workflow.definition
                check = validate(
                    body, ticket, transition_id, actor.roles, metadata, self._approvals,
                )
                if not check.ok:
                    return self._finish(
                        t0, workflow, transition_id, ticket,
                        _Failed(check.error or WorkflowErrorKind.CONFIGURATION_ERROR, check.reason),
                    )

                transition = body.transition(transition_id)
                assert transition is not None  # validate() guarantees it
                effects: list[Effect] = [
                    StageChangeRequest(
                        to_stage_id=transition.to_stage_id,
                        from_stage_id=ticket.current_stage_id,
                        reason=transition.label,
                        origin=f"transition:{transition.id}",
                    )
                ]
                outcome = self._move(body, ticket, transition.to_stage_id, effects, exit_current=True)
                return self._finish(t0, workflow, transition_id, ticket, outcome, effects)

    def validate_only(
        self,
        ticket: TicketSnapshot,
        transition_id: str,
        actor: Actor,
        metadata: TransitionMetadata | None = None,
    ) -> ValidationResult:
        """Run the transition checks without applying anything."""
        t0 = time.monotonic()
        with LogContext.bind(ticket_id=ticket.ticket_id, actor_id=actor.actor_id):
            workflow = self.resolve_definition(ticket)
            if workflow is None:
                result = ValidationResult.denied(
                    transition_id,
                    WorkflowErrorKind.WORKFLOW_NOT_FOUND,
                    self._not_found_reason(ticket),
                )
            else:
                result = validate(
                    workflow.definition, ticket, transition_id, actor.roles, metadata, self._approvals,
                )
            _emit_workflow_trace(
                workflow_name=workflow.name if workflow else None,
                action=f"validate:{transition_id}",
                ticket_id=ticket.ticket_id,
                from_stage=ticket.current_stage_id,
                outcome=OUTCOME_ALLOWED if result.ok else _outcome_for(result.error),
                reason=result.reason,
                duration_ms=(time.monotonic() - t0) * 1000,
                ts=self._clock.now().isoformat(),
                error=result.error,
                outcome_sink=self._outcome_sink,
            )
            return result

    def available_transitions(
        self,
        ticket: TicketSnapshot,
        actor: Actor,
        metadata: TransitionMetadata | None = None,
    ) -> list[AvailableTransition]:
        """Every transition leaving the current stage with its validation result.

        Empty when the ticket's workflow cannot be resolved.  Transitions
        that need a comment report COMMENT_REQUIRED until one is supplied.
        """
        workflow = self.resolve_definition(ticket)
        if workflow is None:
            return []
        body = workflow.definition
        return [
            AvailableTransition(
                transition=t,
                result=validate(body, ticket, t.id, actor.roles, metadata, self._approvals),
            )
            for t in body.transitions_from(ticket.current_stage_id)
        ]

    def start_ticket(
        self,
        ticket_type: WorkflowType | str,
        ticket_id: str,
        actor: Actor,
        fields: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Bind a new ticket to the type's default workflow and enter its initial stage.

        On-enter actions and the rule pass run exactly as for a human
        transition, so a rule can auto-advance the ticket at creation.
        """
        t0 = time.monotonic()
        now = self._clock.now()
        with LogContext.bind(ticket_id=ticket_id, actor_id=actor.actor_id):
            workflow = self._definitions.get_default(_type_key(ticket_type))
            # Not yet in any stage; returned as-is on failure
            placeholder = TicketSnapshot(
                ticket_id=ticket_id,
                ticket_type=workflow.workflow_type if workflow else ticket_type,
                current_stage_id="",
                stage_entered_at=now,
                fields=dict(fields or {}),
            )
            if workflow is None:
                return self._finish(
                    t0, None, "start", placeholder,
                    _Failed(
                        WorkflowErrorKind.WORKFLOW_NOT_FOUND,
                        f"No active default workflow for type '{_type_key(ticket_type)}'",
                    ),
                )

            with LogContext.bind(workflow_id=workflow.id):
                body = workflow.definition
                initial = body.initial_stage()
                if initial is None:
                    return self._finish(
                        t0, workflow, "start", placeholder,
                        _Failed(
                            WorkflowErrorKind.CONFIGURATION_ERROR,
                            f"Initial status '{body.initial_status}' matches no stage",
                        ),
                    )

                ticket = placeholder.pinned_to(workflow.id, workflow.version)
                effects: list[Effect] = [
                    StageChangeRequest(to_stage_id=initial.id, origin="start")
                ]
                outcome = self._move(body, ticket, initial.id, effects, exit_current=False)
                return self._finish(t0, workflow, "start", placeholder, outcome, effects)

    def execute_manual_action(
        self,
        ticket: TicketSnapshot,
        action_id: str,
        actor: Actor,
    ) -> TransitionResult:
        """Run a ``manual`` action of the current stage.

        Field updates are applied to the snapshot; a ``status_change``
        moves the ticket (with on-exit/on-enter actions and the rule pass)
        exactly like an on-enter action would.
        """
        t0 = time.monotonic()
        action_name = f"manual:{action_id}"
        with LogContext.bind(ticket_id=ticket.ticket_id, actor_id=actor.actor_id):
            workflow = self.resolve_definition(ticket)
            if workflow is None:
                return self._finish(
                    t0, None, action_name, ticket,
                    _Failed(WorkflowErrorKind.WORKFLOW_NOT_FOUND, self._not_found_reason(ticket)),
                )

            with LogContext.bind(workflow_id=workflow.id):
                body = workflow.definition
                stage = body.stage(ticket.current_stage_id)
                if stage is None:
                    return self._finish(
                        t0, workflow, action_name, ticket,
                        _Failed(
                            WorkflowErrorKind.CONFIGURATION_ERROR,
                            f"Ticket is in stage '{ticket.current_stage_id}' which the workflow does not define",
                        ),
                    )
                action = next(
                    (a for a in stage.actions_for(ActionTrigger.MANUAL) if a.id == action_id),
                    None,
                )
                if action is None:
                    return self._finish(
                        t0, workflow, action_name, ticket,
                        _Failed(
                            WorkflowErrorKind.NO_SUCH_TRANSITION,
                            f"No manual action '{action_id}' in stage '{stage.id}'",
                        ),
                    )

                effects: list[Effect] = []
                working, stage_change = self._run_actions(
                    (action,), ticket, effects,
                    DispatchContext(actor_id=actor.actor_id),
                )
                if stage_change is None:
                    return self._finish(
                        t0, workflow, action_name, ticket, _Settled(working, 0), effects,
                    )
                if stage.is_final:
                    return self._finish(
                        t0, workflow, action_name, ticket,
                        _Failed(
                            WorkflowErrorKind.TERMINAL_STAGE,
                            f"Stage '{stage.id}' is final; no transitions leave it",
                        ),
                    )
                effects.append(stage_change)
                outcome = self._move(body, working, stage_change.to_stage_id, effects, exit_current=True)
                return self._finish(t0, workflow, action_name, ticket, outcome, effects)

    # ------------------------------------------------------------------
    # Stage movement
    # ------------------------------------------------------------------

    def _move(
        self,
        body: WorkflowDefinitionBody,
        ticket: TicketSnapshot,
        to_stage_id: str,
        effects: list[Effect],
        *,
        exit_current: bool,
    ) -> _Settled | _Failed:
        """Leave the current stage, enter ``to_stage_id`` and settle.

        Settling means running on-enter actions and one rule pass; a stage
        change requested by either starts the next iteration.  ``effects``
        is appended to in place.
        """
        now = self._clock.now()
        working = ticket
        target_id = to_stage_id
        auto = 0
        last_entered: str | None = None

        while True:
            target = body.stage(target_id)
            if target is None:
                return _Failed(
                    WorkflowErrorKind.CONFIGURATION_ERROR,
                    f"Stage change to unknown stage '{target_id}'",
                    auto_transitions=auto,
                    last_entered_stage_id=last_entered,
                )

            if exit_current:
                current = body.stage(working.current_stage_id)
                if current is not None:
                    working = self._leave(current, working, effects)
            exit_current = True

            working = working.with_stage(target.id, now)
            last_entered = target.id
            logger.debug("stage_entered", extra={"stage": target.id, "auto_transitions": auto})

            working, next_change = self._enter(body, target, working, effects)
            if next_change is None:
                return _Settled(working, auto)

            auto += 1
            if auto > self._max_depth:
                return _Failed(
                    WorkflowErrorKind.AUTO_TRANSITION_LOOP_DETECTED,
                    f"More than {self._max_depth} automatic stage changes; "
                    f"last entered stage '{last_entered}'",
                    auto_transitions=auto - 1,
                    last_entered_stage_id=last_entered,
                )
            target_id = next_change.to_stage_id

    def _leave(
        self, stage: Stage, ticket: TicketSnapshot, effects: list[Effect],
    ) -> TicketSnapshot:
        origin = f"stage:{stage.id}"
        working, stage_change = self._run_actions(
            stage.actions_for(ActionTrigger.ON_EXIT), ticket, effects, DispatchContext(),
        )
        if stage_change is not None:
            logger.warning(
                "on_exit_stage_change_ignored",
                extra={"stage": stage.id, "to_stage": stage_change.to_stage_id},
            )
        effects.extend(
            notification_intents(stage.notifications_for(NotificationTrigger.ON_EXIT), working, origin)
        )
        return working

    def _enter(
        self,
        body: WorkflowDefinitionBody,
        stage: Stage,
        ticket: TicketSnapshot,
        effects: list[Effect],
    ) -> tuple[TicketSnapshot, StageChangeRequest | None]:
        """On-enter actions and notifications, then the rule pass.

        An on-enter ``status_change`` moves the ticket on without a rule
        pass in the stage it is leaving.  Nothing moves a ticket out of a
        final stage.
        """
        origin = f"stage:{stage.id}"
        working, stage_change = self._run_actions(
            stage.actions_for(ActionTrigger.ON_ENTER), ticket, effects, DispatchContext(),
        )
        effects.extend(
            notification_intents(stage.notifications_for(NotificationTrigger.ON_ENTER), working, origin)
        )
        if stage_change is not None:
            if stage.is_final:
                logger.warning(
                    "on_enter_stage_change_suppressed_terminal",
                    extra={"stage": stage.id, "to_stage": stage_change.to_stage_id},
                )
            else:
                effects.append(stage_change)
                return working, stage_change

        rule_pass = rules.run(body, working)
        effects.extend(rule_pass.effects)
        return rule_pass.ticket, rule_pass.stage_change

    def _run_actions(
        self,
        actions: Iterable[Action],
        ticket: TicketSnapshot,
        effects: list[Effect],
        context: DispatchContext,
    ) -> tuple[TicketSnapshot, StageChangeRequest | None]:
        """Dispatch ``actions``, folding field updates into the snapshot.

        Stage changes are not appended to ``effects``; the first one that
        leaves the current stage is returned for the caller to act on.
        """
        working = ticket
        stage_change: StageChangeRequest | None = None
        for effect in dispatch_all(actions, ticket, context):
            if isinstance(effect, FieldUpdate):
                working = working.with_field(effect.field, effect.value)
                effects.append(effect)
            elif isinstance(effect, StageChangeRequest):
                if stage_change is None and effect.to_stage_id != working.current_stage_id:
                    stage_change = effect
            else:
                effects.append(effect)
        return working, stage_change

    # ------------------------------------------------------------------
    # Result assembly
    # ------------------------------------------------------------------

    def _finish(
        self,
        t0: float,
        workflow: WorkflowDefinition | None,
        action: str,
        original: TicketSnapshot,
        outcome: _Settled | _Failed,
        effects: list[Effect] | None = None,
    ) -> TransitionResult:
        duration_ms = (time.monotonic() - t0) * 1000
        ts = self._clock.now().isoformat()
        workflow_name = workflow.name if workflow else None

        if isinstance(outcome, _Failed):
            _emit_workflow_trace(
                workflow_name=workflow_name,
                action=action,
                ticket_id=original.ticket_id,
                from_stage=original.current_stage_id,
                outcome=_outcome_for(outcome.error),
                reason=outcome.reason,
                duration_ms=duration_ms,
                ts=ts,
                to_stage=outcome.last_entered_stage_id,
                error=outcome.error,
                auto_transitions=outcome.auto_transitions,
                outcome_sink=self._outcome_sink,
            )
            return TransitionResult(
                success=False,
                ticket=original,
                error=outcome.error,
                reason=outcome.reason,
                auto_transitions=outcome.auto_transitions,
                last_entered_stage_id=outcome.last_entered_stage_id,
            )

        final_effects = _dedupe_notifications(effects or [])
        reason = "Transition applied"
        if outcome.auto_transitions:
            reason = f"Transition applied; {outcome.auto_transitions} automatic stage change(s)"
        _emit_workflow_trace(
            workflow_name=workflow_name,
            action=action,
            ticket_id=original.ticket_id,
            from_stage=original.current_stage_id,
            outcome=OUTCOME_SUCCESS,
            reason=reason,
            duration_ms=duration_ms,
            ts=ts,
            to_stage=outcome.ticket.current_stage_id,
            auto_transitions=outcome.auto_transitions,
            effect_count=len(final_effects),
            outcome_sink=self._outcome_sink,
        )
        return TransitionResult(
            success=True,
            ticket=outcome.ticket,
            effects=tuple(final_effects),
            reason=reason,
            auto_transitions=outcome.auto_transitions,
            last_entered_stage_id=outcome.ticket.current_stage_id,
        )

    @staticmethod
    def _not_found_reason(ticket: TicketSnapshot) -> str:
        if ticket.workflow_definition_id is None:
            return f"No active default workflow for type '{_type_key(ticket.ticket_type)}'"
        return f"Workflow definition '{ticket.workflow_definition_id}' is missing or inactive"


def _outcome_for(error: WorkflowErrorKind | None) -> str:
    return error.value.lower() if error is not None else OUTCOME_SUCCESS


def _dedupe_notifications(effects: list[Effect]) -> list[Effect]:
    seen: set[tuple[str, str, str]] = set()
    result: list[Effect] = []
    for effect in effects:
        if isinstance(effect, NotificationIntent):
            key = (effect.recipient_resolution, effect.template, effect.ticket_ref)
            if key in seen:
                continue
            seen.add(key)
        result.append(effect)
    return result
