"""
Workflow document loader (``ticketflow_config.loader``).

Responsibility
--------------
Parse workflow documents -- YAML files or already-decoded JSON from the
document store -- into the frozen domain types of
``ticketflow_kernel.domain.workflow``, and serialize domain bodies back
to the canonical camelCase document form.

Architecture position
---------------------
**Config layer** -- authoring and storage tooling.  Depends on the
kernel domain only.

Invariants enforced
-------------------
* Every parsed object is a frozen domain dataclass.
* Both key spellings found in stored documents are accepted:
  ``requiredRoles`` / ``requiredRole`` (string or list), and
  ``durationHours`` / ``duration`` with ``warningThresholdPercent`` /
  ``warningThreshold`` for stage SLAs.  ``document_from_body`` always
  writes the first spelling.
* ``compute_checksum`` is independent of key order and key spelling.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown stage type, action type or trigger  -> ``ValueError``.

Condition operators are *not* checked here: an unknown operator is kept
as written and evaluates to false at runtime (the validator reports it).
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

import yaml

from ticketflow_kernel.domain.workflow import (
    Action,
    ActionTrigger,
    ActionType,
    AssignmentConfig,
    Condition,
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
from ticketflow_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path | str) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_workflow_file(path: Path | str) -> WorkflowDefinition:
    """Load and parse a workflow envelope from a YAML file."""
    return parse_workflow_document(load_yaml_file(path))


# =========================================================================
# Parsing
# =========================================================================


def _roles(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_condition(data: Mapping[str, Any]) -> Condition:
    return Condition(
        field=data["field"],
        operator=str(data["operator"]),
        value=data.get("value"),
    )


def parse_action_config(action_type: ActionType, config: Mapping[str, Any]):
    """Build the typed config for ``action_type`` from its raw mapping."""
    if action_type == ActionType.STATUS_CHANGE:
        return StatusChangeConfig(
            to_stage_id=config["toStageId"],
            reason=config.get("reason", ""),
        )
    if action_type == ActionType.ASSIGNMENT:
        return AssignmentConfig(
            assigned_to=config.get("assignedTo"),
            assignment_group=config.get("assignmentGroup"),
        )
    if action_type == ActionType.NOTIFICATION:
        return NotificationConfig(
            recipient=config["recipient"],
            template=config["template"],
        )
    if action_type == ActionType.FIELD_UPDATE:
        return FieldUpdateConfig(field=config["field"], value=config.get("value"))
    return IntegrationConfig(settings=dict(config))


def parse_action(data: Mapping[str, Any]) -> Action:
    action_type = ActionType(data["type"])
    return Action(
        id=data["id"],
        type=action_type,
        trigger=ActionTrigger(data.get("trigger", ActionTrigger.ON_ENTER.value)),
        config=parse_action_config(action_type, data.get("config") or {}),
    )


def parse_notification(data: Mapping[str, Any]) -> Notification:
    return Notification(
        recipient=data["recipient"],
        trigger=NotificationTrigger(data["trigger"]),
        template=data["template"],
    )


def parse_sla(data: Mapping[str, Any] | None) -> SlaPolicy | None:
    if not data:
        return None
    duration = data.get("durationHours", data.get("duration"))
    if duration is None:
        raise KeyError("durationHours")
    threshold = data.get("warningThresholdPercent", data.get("warningThreshold", 80))
    return SlaPolicy(
        duration_hours=float(duration),
        warning_threshold_percent=float(threshold),
    )


def parse_stage(data: Mapping[str, Any]) -> Stage:
    return Stage(
        id=data["id"],
        name=data.get("name", data["id"]),
        type=StageType(data["type"]),
        order=int(data.get("order", 0)),
        actions=tuple(parse_action(a) for a in data.get("actions") or ()),
        notifications=tuple(parse_notification(n) for n in data.get("notifications") or ()),
        sla=parse_sla(data.get("sla")),
        color=data.get("color"),
        icon=data.get("icon"),
    )


def parse_transition(data: Mapping[str, Any]) -> Transition:
    roles = data.get("requiredRoles", data.get("requiredRole"))
    return Transition(
        id=data["id"],
        from_stage_id=data["fromStageId"],
        to_stage_id=data["toStageId"],
        label=data.get("label", ""),
        conditions=tuple(parse_condition(c) for c in data.get("conditions") or ()),
        required_roles=_roles(roles),
        requires_comment=bool(data.get("requiresComment", False)),
        requires_approval=bool(data.get("requiresApproval", False)),
        approval_roles=_roles(data.get("approvalRoles")),
    )


def parse_rule(data: Mapping[str, Any]) -> Rule:
    return Rule(
        id=data["id"],
        name=data.get("name", data["id"]),
        conditions=tuple(parse_condition(c) for c in data.get("conditions") or ()),
        actions=tuple(parse_action(a) for a in data.get("actions") or ()),
        priority=int(data.get("priority", 0)),
        description=data.get("description", ""),
    )


def parse_definition_body(data: Mapping[str, Any]) -> WorkflowDefinitionBody:
    """Parse the executable body (``initialStatus``, stages, transitions, rules)."""
    return WorkflowDefinitionBody(
        initial_status=data["initialStatus"],
        stages=tuple(parse_stage(s) for s in data["stages"]),
        transitions=tuple(parse_transition(t) for t in data.get("transitions") or ()),
        rules=tuple(parse_rule(r) for r in data.get("rules") or ()),
    )


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_workflow_document(data: Mapping[str, Any]) -> WorkflowDefinition:
    """Parse a full envelope (type, name, flags, ``definition`` body)."""
    return WorkflowDefinition(
        id=str(data.get("id", "")),
        workflow_type=WorkflowType(data["workflowType"]),
        name=data["name"],
        definition=parse_definition_body(data["definition"]),
        description=data.get("description", ""),
        is_default=bool(data.get("isDefault", False)),
        is_active=bool(data.get("isActive", True)),
        version=str(data.get("version", "1.0.0")),
        created_by=data.get("createdBy", "system"),
        created_date=_parse_timestamp(data.get("createdDate")),
        modified_by=data.get("modifiedBy", "system"),
        modified_date=_parse_timestamp(data.get("modifiedDate")),
    )


# =========================================================================
# Serialization
# =========================================================================


def _action_config_document(action: Action) -> dict[str, Any]:
    config = action.config
    if isinstance(config, StatusChangeConfig):
        doc: dict[str, Any] = {"toStageId": config.to_stage_id}
        if config.reason:
            doc["reason"] = config.reason
        return doc
    if isinstance(config, AssignmentConfig):
        doc = {}
        if config.assigned_to is not None:
            doc["assignedTo"] = config.assigned_to
        if config.assignment_group is not None:
            doc["assignmentGroup"] = config.assignment_group
        return doc
    if isinstance(config, NotificationConfig):
        return {"recipient": config.recipient, "template": config.template}
    if isinstance(config, FieldUpdateConfig):
        return {"field": config.field, "value": config.value}
    return dict(config.settings)


def _action_document(action: Action) -> dict[str, Any]:
    return {
        "id": action.id,
        "type": action.type.value,
        "trigger": action.trigger.value,
        "config": _action_config_document(action),
    }


def _condition_document(condition: Condition) -> dict[str, Any]:
    return {"field": condition.field, "operator": condition.operator, "value": condition.value}


def document_from_body(body: WorkflowDefinitionBody) -> dict[str, Any]:
    """Canonical camelCase document for a definition body."""
    stages = []
    for s in body.stages:
        stage: dict[str, Any] = {
            "id": s.id,
            "name": s.name,
            "type": s.type.value,
            "order": s.order,
            "actions": [_action_document(a) for a in s.actions],
            "notifications": [
                {"recipient": n.recipient, "trigger": n.trigger.value, "template": n.template}
                for n in s.notifications
            ],
        }
        if s.sla is not None:
            stage["sla"] = {
                "durationHours": s.sla.duration_hours,
                "warningThresholdPercent": s.sla.warning_threshold_percent,
            }
        if s.color is not None:
            stage["color"] = s.color
        if s.icon is not None:
            stage["icon"] = s.icon
        stages.append(stage)

    return {
        "initialStatus": body.initial_status,
        "stages": stages,
        "transitions": [
            {
                "id": t.id,
                "fromStageId": t.from_stage_id,
                "toStageId": t.to_stage_id,
                "label": t.label,
                "conditions": [_condition_document(c) for c in t.conditions],
                "requiredRoles": list(t.required_roles),
                "requiresComment": t.requires_comment,
                "requiresApproval": t.requires_approval,
                "approvalRoles": list(t.approval_roles),
            }
            for t in body.transitions
        ],
        "rules": [
            {
                "id": r.id,
                "name": r.name,
                "description": r.description,
                "conditions": [_condition_document(c) for c in r.conditions],
                "actions": [_action_document(a) for a in r.actions],
                "priority": r.priority,
            }
            for r in body.rules
        ],
    }


def compute_checksum(document: Mapping[str, Any]) -> str:
    """
    SHA-256 of the canonical form of a definition body document.

    The document is parsed and re-serialized first, so legacy key
    spellings and key order do not change the checksum.
    """
    return hash_payload(document_from_body(parse_definition_body(document)))
