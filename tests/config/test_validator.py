"""
Tests for the workflow document validator (ticketflow_config.validator).

Every error kind refuses the document; every warning kind lets it through.
"""

import copy

import pytest

from ticketflow_config.loader import load_yaml_file
from ticketflow_config.seed import BUNDLED_WORKFLOWS_DIR
from ticketflow_config.validator import validate_workflow_document

from tests.builders import request_document


def _body():
    return copy.deepcopy(request_document()["definition"])


def _errors(document) -> list[str]:
    return validate_workflow_document(document).errors


def _warnings(document) -> list[str]:
    return validate_workflow_document(document).warnings


class TestValidDocuments:
    def test_request_document_is_clean(self):
        result = validate_workflow_document(request_document())
        assert result.is_valid
        assert result.warnings == []

    def test_bare_body_accepted(self):
        assert validate_workflow_document(_body()).is_valid

    def test_bundled_workflows_are_valid(self):
        for path in BUNDLED_WORKFLOWS_DIR.glob("*.yaml"):
            result = validate_workflow_document(load_yaml_file(path))
            assert result.is_valid, (path.name, result.errors)

    def test_initial_status_by_display_name(self):
        body = _body()
        body["initialStatus"] = "Pending Approval"
        assert validate_workflow_document(body).is_valid


class TestErrors:
    def test_not_a_mapping(self):
        assert _errors(["stages"]) == ["Workflow document must be a mapping"]

    def test_envelope_fields(self):
        errors = _errors(request_document(workflowType="ticket", name=" "))
        assert any("workflowType" in e for e in errors)
        assert any("name is required" in e for e in errors)

    def test_no_stages(self):
        body = _body()
        body["stages"] = []
        assert _errors(body) == ["Workflow must define at least one stage"]

    def test_duplicate_stage_id(self):
        body = _body()
        body["stages"].append(dict(body["stages"][1]))
        assert any("Duplicate stage id 'approved'" in e for e in _errors(body))

    def test_unknown_stage_type(self):
        body = _body()
        body["stages"][1]["type"] = "waiting"
        assert any("waiting" in e for e in _errors(body))

    @pytest.mark.parametrize("initial_count", [0, 2])
    def test_initial_stage_count(self, initial_count):
        body = _body()
        body["stages"][0]["type"] = "intermediate"
        for s in body["stages"][1:1 + initial_count]:
            s["type"] = "initial"
        assert any("exactly one initial stage" in e for e in _errors(body))

    def test_initial_status_mismatch(self):
        body = _body()
        body["initialStatus"] = "approved"
        assert any("initialStatus" in e for e in _errors(body))

    def test_duplicate_transition_id(self):
        body = _body()
        body["transitions"].append(dict(body["transitions"][0]))
        assert any("Duplicate transition id 'approve'" in e for e in _errors(body))

    def test_transition_to_unknown_stage(self):
        body = _body()
        body["transitions"][0]["toStageId"] = "nowhere"
        assert any("'nowhere' is not a stage" in e for e in _errors(body))

    def test_status_change_to_unknown_stage(self):
        body = _body()
        body["rules"] = [{
            "id": "r1", "priority": 1,
            "actions": [{"id": "a", "type": "status_change", "config": {"toStageId": "limbo"}}],
        }]
        assert any("targets unknown stage 'limbo'" in e for e in _errors(body))

    def test_stage_status_change_to_unknown_stage(self):
        body = _body()
        body["stages"][1]["actions"] = [
            {"id": "auto", "type": "status_change", "trigger": "on_enter", "config": {"toStageId": "limbo"}},
        ]
        assert any("limbo" in e for e in _errors(body))

    def test_unknown_operator(self):
        body = _body()
        body["transitions"][0]["conditions"] = [{"field": "x", "operator": "matches", "value": 1}]
        assert any("unknown operator 'matches'" in e for e in _errors(body))

    def test_in_operator_needs_list(self):
        body = _body()
        body["transitions"][0]["conditions"] = [{"field": "x", "operator": "in", "value": "a"}]
        assert any("needs a list value" in e for e in _errors(body))

    def test_unknown_action_type_and_trigger(self):
        body = _body()
        body["stages"][1]["actions"] = [
            {"id": "a", "type": "teleport"},
            {"id": "b", "type": "notification", "trigger": "sometimes",
             "config": {"recipient": "x", "template": "y"}},
        ]
        errors = _errors(body)
        assert any("unknown type 'teleport'" in e for e in errors)
        assert any("unknown trigger 'sometimes'" in e for e in errors)

    def test_unknown_notification_trigger(self):
        body = _body()
        body["stages"][1]["notifications"] = [{"recipient": "x", "trigger": "whenever", "template": "t"}]
        assert any("whenever" in e for e in _errors(body))

    def test_missing_action_config_keys(self):
        body = _body()
        body["stages"][1]["actions"] = [{"id": "n", "type": "notification", "config": {"recipient": "x"}}]
        assert any("missing 'template'" in e for e in _errors(body))

    @pytest.mark.parametrize(
        "sla,fragment",
        [
            ({"durationHours": 0}, "duration"),
            ({"durationHours": -4}, "duration"),
            ({"durationHours": 8, "warningThresholdPercent": 0}, "threshold"),
            ({"durationHours": 8, "warningThresholdPercent": 101}, "threshold"),
        ],
    )
    def test_sla_bounds(self, sla, fragment):
        body = _body()
        body["stages"][0]["sla"] = sla
        assert any(fragment in e for e in _errors(body))

    def test_threshold_of_100_allowed(self):
        body = _body()
        body["stages"][0]["sla"] = {"durationHours": 8, "warningThresholdPercent": 100}
        assert validate_workflow_document(body).is_valid

    def test_approval_without_roles(self):
        body = _body()
        body["transitions"][0]["requiresApproval"] = True
        assert any("lists no approvalRoles" in e for e in _errors(body))

    def test_reports_every_problem_at_once(self):
        body = _body()
        body["initialStatus"] = "nope"
        body["transitions"][0]["toStageId"] = "nowhere"
        body["transitions"][1]["requiresApproval"] = True
        assert len(_errors(body)) >= 3

    def test_unhashable_values_do_not_raise(self):
        body = _body()
        body["stages"][1]["type"] = ["initial"]
        body["transitions"][0]["fromStageId"] = {"id": "x"}
        assert not validate_workflow_document(body).is_valid


class TestWarnings:
    def test_no_reachable_final_stage(self):
        body = _body()
        body["transitions"] = [t for t in body["transitions"] if t["toStageId"] not in {"rejected", "closed"}]
        result = validate_workflow_document(body)
        assert result.is_valid
        assert any("No final stage is reachable" in w for w in result.warnings)

    def test_unreachable_stage(self):
        body = _body()
        body["stages"].append({"id": "orphan", "name": "Orphan", "type": "intermediate"})
        assert any("'orphan' is unreachable" in w for w in _warnings(body))

    def test_stage_reached_by_rule_is_reachable(self):
        body = _body()
        body["stages"].append({"id": "fast", "name": "Fast", "type": "intermediate"})
        body["transitions"].append({"id": "finish", "fromStageId": "fast", "toStageId": "closed"})
        body["rules"] = [{
            "id": "r1", "priority": 1,
            "actions": [{"id": "a", "type": "status_change", "config": {"toStageId": "fast"}}],
        }]
        assert not any("fast" in w for w in _warnings(body))

    def test_transition_out_of_final(self):
        body = _body()
        body["transitions"].append({"id": "reopen", "fromStageId": "closed", "toStageId": "approved"})
        assert any("leaves final stage 'closed'" in w for w in _warnings(body))

    def test_duplicate_rule_priority(self):
        body = _body()
        body["rules"] = [
            {"id": "r1", "priority": 5, "actions": []},
            {"id": "r2", "priority": 5, "actions": []},
        ]
        result = validate_workflow_document(body)
        assert result.is_valid
        assert any("share priority 5" in w for w in result.warnings)
