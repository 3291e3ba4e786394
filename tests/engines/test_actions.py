"""
Tests for the action dispatcher (ticketflow_engines.actions).
"""

from ticketflow_engines.actions import (
    ASSIGNED_TO_FIELD,
    ASSIGNMENT_GROUP_FIELD,
    DispatchContext,
    dispatch,
    dispatch_all,
    notification_intents,
)
from ticketflow_kernel.domain.effects import (
    FieldUpdate,
    IntegrationCallIntent,
    NotificationIntent,
    StageChangeRequest,
    effect_to_dict,
)

from tests.builders import (
    assign,
    field_update,
    integration,
    notify,
    stage_notification,
    status_change,
    ticket,
)


class TestDispatch:
    def test_status_change(self):
        t = ticket("pending_approval")
        [effect] = dispatch(status_change("approved", reason="auto"), t)
        assert effect == StageChangeRequest(
            to_stage_id="approved",
            from_stage_id="pending_approval",
            reason="auto",
            origin="action:to_approved",
        )

    def test_field_update(self):
        [effect] = dispatch(field_update("Priority", "High"), ticket())
        assert isinstance(effect, FieldUpdate)
        assert (effect.field, effect.value) == ("Priority", "High")

    def test_assignment_emits_one_update_per_target(self):
        effects = dispatch(assign("alice", "network-ops"), ticket())
        assert [(e.field, e.value) for e in effects] == [
            (ASSIGNED_TO_FIELD, "alice"),
            (ASSIGNMENT_GROUP_FIELD, "network-ops"),
        ]

    def test_assignment_group_only(self):
        effects = dispatch(assign(assignment_group="service-desk"), ticket())
        assert [e.field for e in effects] == [ASSIGNMENT_GROUP_FIELD]

    def test_notification_references_ticket(self):
        t = ticket()
        [effect] = dispatch(notify("approver", "request_approval_needed"), t)
        assert isinstance(effect, NotificationIntent)
        assert effect.ticket_ref == t.ticket_id
        assert effect.recipient_resolution == "approver"

    def test_integration_passes_settings_through(self):
        settings = {"system": "jira", "project": "OPS", "nested": {"a": 1}}
        [effect] = dispatch(integration(settings), ticket())
        assert isinstance(effect, IntegrationCallIntent)
        assert dict(effect.config) == settings

    def test_origin_override(self):
        [effect] = dispatch(
            status_change("approved"), ticket(), DispatchContext(origin="rule:auto"),
        )
        assert effect.origin == "rule:auto"

    def test_dispatch_does_not_touch_the_ticket(self):
        t = ticket(fields={"Priority": "Low"})
        dispatch(field_update("Priority", "High"), t)
        assert t.fields["Priority"] == "Low"


class TestDispatchAll:
    def test_preserves_action_order(self):
        effects = dispatch_all(
            (field_update("a", 1), notify("requester", "hello"), status_change("done")),
            ticket(),
        )
        assert [type(e) for e in effects] == [FieldUpdate, NotificationIntent, StageChangeRequest]


class TestNotificationIntents:
    def test_stage_notifications(self):
        t = ticket()
        intents = notification_intents(
            (stage_notification("requester", "request_approved"),), t, "stage:approved",
        )
        assert intents == [
            NotificationIntent(
                recipient_resolution="requester",
                template="request_approved",
                ticket_ref=t.ticket_id,
                origin="stage:approved",
            )
        ]


class TestEffectSerialization:
    def test_stage_change_to_dict(self):
        effect = StageChangeRequest("approved", "pending_approval", "ok", "transition:approve")
        assert effect_to_dict(effect) == {
            "kind": "stage_change",
            "origin": "transition:approve",
            "toStageId": "approved",
            "fromStageId": "pending_approval",
            "reason": "ok",
        }
