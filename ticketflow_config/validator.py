"""
Workflow document validator (``ticketflow_config.validator``).

Responsibility
--------------
Authoring-time checks on a workflow document before it is stored.  The
runtime engine refuses individual illegal moves; this module refuses
documents that could never run correctly.

Architecture position
---------------------
**Config layer** -- works on the raw camelCase document so that it can
report every problem at once instead of stopping at the first parse
error.

Invariants enforced
-------------------
Errors (the document MUST NOT be stored):

* no stages, duplicate stage ids, unknown stage types;
* zero or several ``initial`` stages, or an ``initialStatus`` that is not
  the initial stage's id or name;
* duplicate transition ids, transitions or ``status_change`` actions that
  name a stage the document does not have;
* unknown action types, action triggers, notification triggers or
  condition operators;
* SLA duration ``<= 0`` or warning threshold outside ``(0, 100]``;
* ``requiresApproval`` without ``approvalRoles``.

Warnings (stored, but worth a look):

* no ``final`` stage reachable from the initial stage;
* stages unreachable from the initial stage;
* transitions leaving a ``final`` stage (the engine never takes them);
* several rules sharing one priority (declaration order decides).
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Mapping

from ticketflow_kernel.domain.workflow import (
    ActionTrigger,
    ActionType,
    ConditionOperator,
    NotificationTrigger,
    StageType,
    WorkflowType,
)

_STAGE_TYPES = {t.value for t in StageType}
_ACTION_TYPES = {t.value for t in ActionType}
_ACTION_TRIGGERS = {t.value for t in ActionTrigger}
_NOTIFICATION_TRIGGERS = {t.value for t in NotificationTrigger}
_OPERATORS = {o.value for o in ConditionOperator}
_WORKFLOW_TYPES = {t.value for t in WorkflowType}

_REQUIRED_CONFIG_KEYS = {
    ActionType.STATUS_CHANGE.value: ("toStageId",),
    ActionType.NOTIFICATION.value: ("recipient", "template"),
    ActionType.FIELD_UPDATE.value: ("field",),
}


@dataclass
class WorkflowValidationResult:
    """
    Result of validating one workflow document.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_workflow_document(document: Mapping[str, Any]) -> WorkflowValidationResult:
    """
    Validate a workflow document.

    Accepts either a full envelope (with ``workflowType``, ``name`` and a
    ``definition`` body) or a bare body.  Never raises for malformed
    content; every problem becomes an error string.
    """
    result = WorkflowValidationResult()

    if not isinstance(document, Mapping):
        result.add_error("Workflow document must be a mapping")
        return result

    body: Any = document
    if "definition" in document:
        _validate_envelope(document, result)
        body = document.get("definition")
        if not isinstance(body, Mapping):
            result.add_error("'definition' must be a mapping")
            return result

    stages = _list_of_mappings(body.get("stages"), "stages", result)
    if not stages:
        result.add_error("Workflow must define at least one stage")
        return result

    stage_ids = _validate_stages(stages, result)
    stage_types = {s["id"]: s.get("type") for s in stages if isinstance(s.get("id"), str)}
    _validate_initial(body, stages, result)

    transitions = _list_of_mappings(body.get("transitions"), "transitions", result)
    _validate_transitions(transitions, stage_ids, stage_types, result)

    rules = _list_of_mappings(body.get("rules"), "rules", result)
    _validate_rules(rules, stage_ids, result)

    _validate_reachability(stages, transitions, rules, result)
    return result


# =========================================================================
# Section checks
# =========================================================================


def _validate_envelope(document: Mapping[str, Any], result: WorkflowValidationResult) -> None:
    if not _member(document.get("workflowType"), _WORKFLOW_TYPES):
        result.add_error(
            f"Unknown workflowType {document.get('workflowType')!r}; "
            f"expected one of {sorted(_WORKFLOW_TYPES)}"
        )
    name = document.get("name")
    if not isinstance(name, str) or not name.strip():
        result.add_error("Workflow name is required")


def _list_of_mappings(value: Any, label: str, result: WorkflowValidationResult) -> list[Mapping]:
    if value is None:
        return []
    if not isinstance(value, list):
        result.add_error(f"'{label}' must be a list")
        return []
    items = []
    for i, item in enumerate(value):
        if isinstance(item, Mapping):
            items.append(item)
        else:
            result.add_error(f"{label}[{i}] must be a mapping")
    return items


def _validate_stages(stages: list[Mapping], result: WorkflowValidationResult) -> set[str]:
    seen: set[str] = set()
    for stage in stages:
        sid = stage.get("id")
        if not isinstance(sid, str) or not sid:
            result.add_error("Every stage needs a non-empty string id")
            continue
        if sid in seen:
            result.add_error(f"Duplicate stage id '{sid}'")
        seen.add(sid)

        if not _member(stage.get("type"), _STAGE_TYPES):
            result.add_error(f"Stage '{sid}' has unknown type {stage.get('type')!r}")

        for action in _list_of_mappings(stage.get("actions"), f"stage '{sid}' actions", result):
            _validate_action(action, f"stage '{sid}'", result)

        for n in _list_of_mappings(stage.get("notifications"), f"stage '{sid}' notifications", result):
            if not _member(n.get("trigger"), _NOTIFICATION_TRIGGERS):
                result.add_error(
                    f"Stage '{sid}' notification has unknown trigger {n.get('trigger')!r}"
                )
            if not n.get("recipient") or not n.get("template"):
                result.add_error(f"Stage '{sid}' notification needs recipient and template")

        _validate_sla(sid, stage.get("sla"), result)

    # status_change targets are checked once all ids are known
    for stage in stages:
        for action in stage.get("actions") or ():
            _check_status_target(action, seen, f"stage '{stage.get('id')}'", result)
    return seen


def _validate_sla(stage_id: str, sla: Any, result: WorkflowValidationResult) -> None:
    if sla is None:
        return
    if not isinstance(sla, Mapping):
        result.add_error(f"Stage '{stage_id}' sla must be a mapping")
        return
    duration = sla.get("durationHours", sla.get("duration"))
    if not _is_number(duration) or duration <= 0:
        result.add_error(f"Stage '{stage_id}' SLA duration must be a positive number of hours")
    threshold = sla.get("warningThresholdPercent", sla.get("warningThreshold", 80))
    if not _is_number(threshold) or not 0 < threshold <= 100:
        result.add_error(f"Stage '{stage_id}' SLA warning threshold must be in (0, 100]")


def _validate_initial(
    body: Mapping[str, Any], stages: list[Mapping], result: WorkflowValidationResult,
) -> None:
    initials = [s for s in stages if s.get("type") == StageType.INITIAL.value]
    if len(initials) != 1:
        result.add_error(f"Workflow must have exactly one initial stage, found {len(initials)}")
        return
    initial_status = body.get("initialStatus")
    initial = initials[0]
    if initial_status not in (initial.get("id"), initial.get("name")):
        result.add_error(
            f"initialStatus {initial_status!r} does not name the initial stage "
            f"'{initial.get('id')}'"
        )


def _validate_transitions(
    transitions: list[Mapping],
    stage_ids: set[str],
    stage_types: dict[Any, Any],
    result: WorkflowValidationResult,
) -> None:
    seen: set[str] = set()
    for t in transitions:
        tid = t.get("id")
        if not isinstance(tid, str) or not tid:
            result.add_error("Every transition needs a non-empty string id")
            continue
        if tid in seen:
            result.add_error(f"Duplicate transition id '{tid}'")
        seen.add(tid)

        for key in ("fromStageId", "toStageId"):
            if not _member(t.get(key), stage_ids):
                result.add_error(f"Transition '{tid}' {key} {t.get(key)!r} is not a stage")
        if _member(t.get("fromStageId"), stage_types) and stage_types[t["fromStageId"]] == StageType.FINAL.value:
            result.add_warning(
                f"Transition '{tid}' leaves final stage '{t.get('fromStageId')}' and can never fire"
            )

        for c in _list_of_mappings(t.get("conditions"), f"transition '{tid}' conditions", result):
            _validate_condition(c, f"transition '{tid}'", result)

        if t.get("requiresApproval") and not t.get("approvalRoles"):
            result.add_error(f"Transition '{tid}' requires approval but lists no approvalRoles")


def _validate_rules(
    rules: list[Mapping], stage_ids: set[str], result: WorkflowValidationResult,
) -> None:
    by_priority: dict[Any, list[str]] = {}
    for r in rules:
        rid = r.get("id")
        if not isinstance(rid, str) or not rid:
            result.add_error("Every rule needs a non-empty string id")
            continue
        priority = r.get("priority", 0)
        if not isinstance(priority, int) or isinstance(priority, bool):
            result.add_error(f"Rule '{rid}' priority must be an integer")
        else:
            by_priority.setdefault(priority, []).append(rid)

        for c in _list_of_mappings(r.get("conditions"), f"rule '{rid}' conditions", result):
            _validate_condition(c, f"rule '{rid}'", result)
        for a in _list_of_mappings(r.get("actions"), f"rule '{rid}' actions", result):
            _validate_action(a, f"rule '{rid}'", result)
            _check_status_target(a, stage_ids, f"rule '{rid}'", result)

    for priority, ids in sorted(by_priority.items()):
        if len(ids) > 1:
            result.add_warning(
                f"Rules {ids} share priority {priority}; declaration order decides"
            )


def _validate_action(action: Mapping, owner: str, result: WorkflowValidationResult) -> None:
    aid = action.get("id", "<no id>")
    atype = action.get("type")
    if not _member(atype, _ACTION_TYPES):
        result.add_error(f"{owner} action '{aid}' has unknown type {atype!r}")
        return
    if not _member(action.get("trigger", ActionTrigger.ON_ENTER.value), _ACTION_TRIGGERS):
        result.add_error(f"{owner} action '{aid}' has unknown trigger {action.get('trigger')!r}")
    config = action.get("config") or {}
    if not isinstance(config, Mapping):
        result.add_error(f"{owner} action '{aid}' config must be a mapping")
        return
    for key in _REQUIRED_CONFIG_KEYS.get(atype, ()):
        if key not in config:
            result.add_error(f"{owner} action '{aid}' config is missing '{key}'")
    if atype == ActionType.ASSIGNMENT.value and not (
        config.get("assignedTo") or config.get("assignmentGroup")
    ):
        result.add_error(f"{owner} action '{aid}' assigns nobody")


def _check_status_target(
    action: Any, stage_ids: set[str], owner: str, result: WorkflowValidationResult,
) -> None:
    if not isinstance(action, Mapping) or action.get("type") != ActionType.STATUS_CHANGE.value:
        return
    config = action.get("config")
    if not isinstance(config, Mapping) or "toStageId" not in config:
        return
    if not _member(config["toStageId"], stage_ids):
        result.add_error(
            f"{owner} action '{action.get('id', '<no id>')}' targets unknown stage "
            f"{config['toStageId']!r}"
        )


def _validate_condition(condition: Mapping, owner: str, result: WorkflowValidationResult) -> None:
    if not condition.get("field"):
        result.add_error(f"{owner} has a condition without a field")
    operator = condition.get("operator")
    if not _member(operator, _OPERATORS):
        result.add_error(f"{owner} condition uses unknown operator {operator!r}")
    elif operator == ConditionOperator.IN.value and not isinstance(
        condition.get("value"), (list, tuple)
    ):
        result.add_error(f"{owner} 'in' condition needs a list value")


# =========================================================================
# Reachability
# =========================================================================


def _validate_reachability(
    stages: list[Mapping],
    transitions: list[Mapping],
    rules: list[Mapping],
    result: WorkflowValidationResult,
) -> None:
    """BFS from the initial stage over transitions and status_change actions."""
    initials = [s.get("id") for s in stages if s.get("type") == StageType.INITIAL.value]
    if len(initials) != 1 or not isinstance(initials[0], str):
        return
    ids = [s.get("id") for s in stages if isinstance(s.get("id"), str)]
    final_ids = {
        s["id"] for s in stages
        if isinstance(s.get("id"), str) and s.get("type") == StageType.FINAL.value
    }

    edges: dict[str, set[str]] = {sid: set() for sid in ids}
    for t in transitions:
        if _member(t.get("fromStageId"), edges) and _member(t.get("toStageId"), edges):
            edges[t["fromStageId"]].add(t["toStageId"])
    for s in stages:
        for target in _status_targets(s.get("actions")):
            if _member(s.get("id"), edges) and target in edges:
                edges[s["id"]].add(target)
    # A rule can fire in any non-final stage
    for r in rules:
        for target in _status_targets(r.get("actions")):
            if target in edges:
                for sid in ids:
                    if sid not in final_ids:
                        edges[sid].add(target)

    start = initials[0]
    reached = {start}
    queue = deque([start])
    while queue:
        for nxt in edges.get(queue.popleft(), ()):
            if nxt not in reached:
                reached.add(nxt)
                queue.append(nxt)

    if not reached & final_ids:
        result.add_warning(f"No final stage is reachable from initial stage '{start}'")
    for sid in ids:
        if sid not in reached:
            result.add_warning(f"Stage '{sid}' is unreachable from initial stage '{start}'")


def _status_targets(actions: Any) -> list[str]:
    targets = []
    for a in actions or ():
        if isinstance(a, Mapping) and a.get("type") == ActionType.STATUS_CHANGE.value:
            config = a.get("config")
            if isinstance(config, Mapping) and isinstance(config.get("toStageId"), str):
                targets.append(config["toStageId"])
    return targets


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _member(value: Any, allowed: Any) -> bool:
    """``value in allowed`` that tolerates unhashable document values."""
    return isinstance(value, str) and value in allowed
