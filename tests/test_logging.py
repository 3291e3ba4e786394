"""Tests for structured logging (ticketflow_kernel.logging_config)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from ticketflow_kernel.domain.effects import NotificationIntent
from ticketflow_kernel.domain.outcomes import WorkflowErrorKind
from ticketflow_kernel.exceptions import OptimisticLockError
from ticketflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Start unconfigured; put the suite's configuration back afterwards."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


@pytest.fixture
def json_log():
    """Configure logging into a buffer; call the fixture to read the records."""
    buffer = StringIO()

    def read() -> list[dict]:
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    read.buffer = buffer
    return read


def _install(json_log, **options) -> logging.Logger:
    configure_logging(stream=json_log.buffer, **options)
    return get_logger("tests")


class TestRecordShape:
    def test_core_keys(self, json_log):
        _install(json_log).info("ticket_started")

        [record] = json_log()
        assert record["message"] == "ticket_started"
        assert record["level"] == "INFO"
        assert record["logger"] == "ticketflow.tests"
        assert record["ts"].endswith("+00:00")

    def test_extra_and_context_merged(self, json_log):
        log = _install(json_log)
        LogContext.set(ticket_id="t-1", workflow_id="wf-9")
        log.info("stage_entered", extra={"stage": "approved", "auto_transitions": 2})

        [record] = json_log()
        assert (record["stage"], record["auto_transitions"]) == ("approved", 2)
        assert (record["ticket_id"], record["workflow_id"]) == ("t-1", "wf-9")

    def test_domain_values_serialized(self, json_log):
        uid = uuid4()
        intent = NotificationIntent(recipient_resolution="approver", template="t", ticket_ref="x")
        _install(json_log).info(
            "typed",
            extra={
                "workflow_uuid": uid,
                "error_kind": WorkflowErrorKind.TERMINAL_STAGE,
                "roles": frozenset({"admin"}),
                "intent": intent,
            },
        )

        [record] = json_log()
        assert record["workflow_uuid"] == str(uid)
        assert record["error_kind"] == "TERMINAL_STAGE"
        assert record["roles"] == ["admin"]
        assert record["intent"]["kind"] == intent.kind
        assert record["intent"]["template"] == "t"


class TestExceptions:
    def test_plain_exception(self, json_log):
        log = _install(json_log)
        try:
            raise ValueError("boom")
        except ValueError:
            log.exception("failed")

        [record] = json_log()
        assert (record["exc_type"], record["exc_message"]) == ("ValueError", "boom")
        assert "ValueError: boom" in record["traceback"]
        assert "exc_code" not in record

    def test_kernel_exception_attributes(self, json_log):
        log = _install(json_log)
        try:
            raise OptimisticLockError("Ticket", "t-1", 3)
        except OptimisticLockError:
            log.error("save_failed", exc_info=True)

        [record] = json_log()
        assert record["exc_code"] == "OPTIMISTIC_LOCK_CONFLICT"
        assert record["exc_entity_id"] == "t-1"
        assert record["exc_expected_version"] == 3


class TestLogContext:
    def test_set_and_clear(self):
        LogContext.set(ticket_id="x", actor_id="y")
        assert LogContext.get_all() == {"ticket_id": "x", "actor_id": "y"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_set_rejects_unknown_field(self):
        with pytest.raises(TypeError, match="tenant"):
            LogContext.set(tenant="acme")

    def test_nested_bind_restores(self):
        LogContext.set(ticket_id="outer")
        with LogContext.bind(ticket_id="inner", workflow_id="wf"):
            with LogContext.bind(actor_id="a"):
                assert LogContext.get_all() == {"ticket_id": "inner", "workflow_id": "wf", "actor_id": "a"}
            assert "actor_id" not in LogContext.get_all()
        assert LogContext.get_all() == {"ticket_id": "outer"}

    def test_bind_ignores_none_and_unknown_keys(self):
        with LogContext.bind(ticket_id=None, not_a_field="z"):
            assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_info_by_default(self, json_log):
        log = _install(json_log)
        log.debug("hidden")
        log.warning("shown")
        assert [r["message"] for r in json_log()] == ["shown"]

    def test_level_name_any_case(self, json_log):
        _install(json_log, level="debug").debug("visible")
        assert [r["message"] for r in json_log()] == ["visible"]

    def test_only_first_call_counts(self):
        first, second = logging.NullHandler(), logging.NullHandler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        handlers = logging.getLogger("ticketflow").handlers
        assert first in handlers
        assert second not in handlers

    def test_child_loggers_share_handler(self):
        buffer = StringIO()
        handler = logging.StreamHandler(buffer)
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("services.sla_monitor")
        child.debug("hierarchy")

        assert child.name == "ticketflow.services.sla_monitor"
        assert json.loads(buffer.getvalue())["logger"] == "ticketflow.services.sla_monitor"
        assert isinstance(handler.formatter, StructuredFormatter)

    def test_reset_detaches_handlers(self):
        configure_logging(handler=logging.NullHandler())
        reset_logging()
        assert logging.getLogger("ticketflow").handlers == []
