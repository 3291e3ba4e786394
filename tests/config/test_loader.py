"""
Tests for the workflow document loader (ticketflow_config.loader).

Verifies:
- camelCase documents parse into frozen domain types
- legacy key spellings are accepted and written back canonically
- the checksum ignores key order and key spelling
- the bundled YAML workflow loads
"""

import pytest
import yaml

from ticketflow_config.loader import (
    compute_checksum,
    document_from_body,
    load_workflow_file,
    load_yaml_file,
    parse_action,
    parse_definition_body,
    parse_transition,
    parse_workflow_document,
)
from ticketflow_config.seed import BUNDLED_WORKFLOWS_DIR
from ticketflow_kernel.domain.workflow import (
    ActionTrigger,
    ActionType,
    AssignmentConfig,
    IntegrationConfig,
    StageType,
    WorkflowType,
)

from tests.builders import request_document


class TestParsing:
    def test_envelope(self):
        workflow = parse_workflow_document(
            request_document(createdDate="2024-03-01T10:00:00Z", id="wf-1")
        )
        assert workflow.id == "wf-1"
        assert workflow.workflow_type == WorkflowType.REQUEST
        assert workflow.is_default
        assert workflow.created_date.year == 2024
        assert workflow.created_date.utcoffset().total_seconds() == 0

    def test_stage_sla_and_types(self):
        body = parse_definition_body(request_document()["definition"])
        pending = body.stage("pending_approval")
        assert pending.type == StageType.INITIAL
        assert pending.sla.duration_hours == 24.0
        assert pending.sla.warning_threshold_percent == 80.0
        assert body.stage("closed").is_final

    def test_action_defaults_to_on_enter(self):
        action = parse_action({"id": "a", "type": "assignment", "config": {"assignmentGroup": "desk"}})
        assert action.trigger == ActionTrigger.ON_ENTER
        assert action.config == AssignmentConfig(assigned_to=None, assignment_group="desk")

    def test_integration_keeps_raw_config(self):
        action = parse_action({"id": "hook", "type": "integration", "config": {"url": "https://x", "retries": 3}})
        assert action.type == ActionType.INTEGRATION
        assert action.config == IntegrationConfig(settings={"url": "https://x", "retries": 3})

    def test_unknown_action_type(self):
        with pytest.raises(ValueError):
            parse_action({"id": "a", "type": "teleport"})

    def test_unknown_operator_survives(self):
        body = parse_definition_body({
            "initialStatus": "open",
            "stages": [{"id": "open", "type": "initial"}],
            "rules": [{"id": "r", "conditions": [{"field": "x", "operator": "matches", "value": 1}]}],
        })
        assert body.rules[0].conditions[0].operator == "matches"

    def test_missing_required_key(self):
        with pytest.raises(KeyError):
            parse_definition_body({"stages": []})


class TestLegacyKeys:
    def test_required_role_string(self):
        t = parse_transition({"id": "t", "fromStageId": "a", "toStageId": "b", "requiredRole": "admin"})
        assert t.required_roles == ("admin",)

    def test_sla_short_keys(self):
        body = parse_definition_body({
            "initialStatus": "open",
            "stages": [{"id": "open", "type": "initial", "sla": {"duration": 8, "warningThreshold": 50}}],
        })
        assert body.stage("open").sla.duration_hours == 8.0
        assert body.stage("open").sla.warning_threshold_percent == 50.0


class TestCanonicalForm:
    def test_document_round_trip(self):
        body = parse_definition_body(request_document()["definition"])
        assert parse_definition_body(document_from_body(body)) == body

    def test_checksum_ignores_key_order(self):
        document = request_document()["definition"]
        reordered = dict(reversed(list(document.items())))
        assert compute_checksum(reordered) == compute_checksum(document)

    def test_checksum_ignores_legacy_spelling(self):
        canonical = request_document()["definition"]
        legacy = request_document()["definition"]
        legacy["transitions"][2] = {
            "id": "close", "fromStageId": "approved", "toStageId": "closed",
            "label": "Close", "requiredRole": [],
        }
        legacy["stages"][0]["sla"] = {"duration": 24, "warningThreshold": 80}
        assert compute_checksum(legacy) == compute_checksum(canonical)

    def test_checksum_changes_with_content(self):
        changed = request_document()["definition"]
        changed["transitions"][0]["requiredRoles"] = ["agent"]
        assert compute_checksum(changed) != compute_checksum(request_document()["definition"])


class TestFiles:
    def test_bundled_request_workflow(self):
        workflow = load_workflow_file(BUNDLED_WORKFLOWS_DIR / "default_request_workflow.yaml")

        assert workflow.workflow_type == WorkflowType.REQUEST
        assert workflow.is_default
        assert workflow.definition.initial_stage().id == "pending_approval"
        assert [r.id for r in workflow.definition.rules] == ["auto_approve_low_priority"]

    def test_empty_file_is_empty_mapping(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml_file(path) == {}

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("stages: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_file(tmp_path / "nope.yaml")
