"""
ticketflow_engines.rules -- Single-pass automation rule engine.

Responsibility:
    Evaluate a workflow's rules against a ticket in ascending priority,
    dispatch the actions of every matching rule, and fold field updates
    into the working snapshot as it goes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Emits debug/warning log
    records only.

Invariants enforced:
    - Order-sensitive, single pass: a later rule sees the field updates of
      earlier rules in the same pass; earlier rules are never re-checked.
      Cost is O(number of rules) per call and rule cycles cannot spin here.
    - The pass stops after the first rule that requests a real stage
      change.  Re-running rules under the new stage is the executor's job.
    - Idempotence: a ``status_change`` to the stage the ticket is already
      in is dropped, so a rule that keeps matching after it moved the
      ticket does not move it again.
    - Rules never move a ticket out of a ``final`` stage.
"""

from __future__ import annotations

from dataclasses import dataclass

from ticketflow_engines.actions import DispatchContext, dispatch_all
from ticketflow_engines.conditions import evaluate, is_supported_operator
from ticketflow_kernel.domain.effects import Effect, FieldUpdate, StageChangeRequest
from ticketflow_kernel.domain.ticket import TicketSnapshot
from ticketflow_kernel.domain.workflow import Rule, WorkflowDefinitionBody
from ticketflow_kernel.logging_config import get_logger

logger = get_logger("engines.rules")


@dataclass(frozen=True)
class RulePassResult:
    """Outcome of one rule pass.

    ``ticket`` has the pass's field updates applied but still sits in the
    stage it started in; ``stage_change`` is the request that ended the
    pass, if any (it is also the last stage effect in ``effects``).
    """

    ticket: TicketSnapshot
    effects: tuple[Effect, ...] = ()
    fired_rules: tuple[str, ...] = ()
    stage_change: StageChangeRequest | None = None


def run(definition: WorkflowDefinitionBody, ticket: TicketSnapshot) -> RulePassResult:
    """Run one rule pass for ``ticket`` under ``definition``."""
    stage = definition.stage(ticket.current_stage_id)
    in_final_stage = stage is not None and stage.is_final

    working = ticket
    effects: list[Effect] = []
    fired: list[str] = []
    stage_change: StageChangeRequest | None = None

    for rule in definition.rules_by_priority():
        _warn_unsupported_operators(rule)
        if not evaluate(rule.conditions, working.fields):
            continue

        fired.append(rule.id)
        logger.debug(
            "rule_fired",
            extra={"rule_id": rule.id, "priority": rule.priority, "stage": working.current_stage_id},
        )

        for effect in dispatch_all(rule.actions, working, DispatchContext(origin=f"rule:{rule.id}")):
            if isinstance(effect, FieldUpdate):
                working = working.with_field(effect.field, effect.value)
                effects.append(effect)
            elif isinstance(effect, StageChangeRequest):
                if stage_change is not None:
                    # First stage change of the firing rule wins
                    continue
                if effect.to_stage_id == working.current_stage_id:
                    continue
                if in_final_stage:
                    logger.warning(
                        "rule_stage_change_suppressed_terminal",
                        extra={
                            "rule_id": rule.id,
                            "stage": working.current_stage_id,
                            "to_stage": effect.to_stage_id,
                        },
                    )
                    continue
                stage_change = effect
                effects.append(effect)
            else:
                effects.append(effect)

        if stage_change is not None:
            break

    return RulePassResult(
        ticket=working,
        effects=tuple(effects),
        fired_rules=tuple(fired),
        stage_change=stage_change,
    )


def _warn_unsupported_operators(rule: Rule) -> None:
    for condition in rule.conditions:
        if not is_supported_operator(condition.operator):
            logger.warning(
                "rule_condition_unsupported_operator",
                extra={
                    "rule_id": rule.id,
                    "field": condition.field,
                    "operator": condition.operator,
                },
            )
