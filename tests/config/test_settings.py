"""
Tests for engine settings (ticketflow_config.settings).
"""

import pytest

from ticketflow_config.settings import EngineSettings, load_settings
from ticketflow_services.sla_monitor import SlaMonitor
from ticketflow_services.ticket_workflow_service import TicketWorkflowService


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(environ={})
        assert settings == EngineSettings()
        assert settings.max_auto_transition_depth == 10
        assert settings.sla_sweep_interval_seconds == 3600.0

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "ticketflow.yaml"
        path.write_text(
            "max_auto_transition_depth: 4\nlog_level: debug\ndatabase_url: sqlite://\n",
            encoding="utf-8",
        )
        settings = load_settings(path, environ={})
        assert settings.max_auto_transition_depth == 4
        assert settings.log_level == "DEBUG"
        assert settings.database_url == "sqlite://"

    def test_environment_wins_over_file(self, tmp_path):
        path = tmp_path / "ticketflow.yaml"
        path.write_text("sla_sweep_interval_seconds: 60\n", encoding="utf-8")
        settings = load_settings(path, environ={"TICKETFLOW_SLA_SWEEP_INTERVAL_SECONDS": "15.5"})
        assert settings.sla_sweep_interval_seconds == 15.5

    def test_unknown_key_in_file(self, tmp_path):
        path = tmp_path / "ticketflow.yaml"
        path.write_text("max_depth: 3\n", encoding="utf-8")
        with pytest.raises(ValueError, match="max_depth"):
            load_settings(path, environ={})

    def test_process_environment_used_by_default(self, monkeypatch):
        monkeypatch.setenv("TICKETFLOW_MAX_AUTO_TRANSITION_DEPTH", "7")
        assert load_settings().max_auto_transition_depth == 7


class TestEngineSettings:
    @pytest.mark.parametrize(
        "overrides",
        [{"max_auto_transition_depth": -1}, {"sla_sweep_interval_seconds": 0}],
    )
    def test_rejects_out_of_range(self, overrides):
        with pytest.raises(ValueError):
            EngineSettings(**overrides)

    def test_zero_depth_allowed(self):
        assert EngineSettings(max_auto_transition_depth=0).max_auto_transition_depth == 0


class TestWiring:
    def test_ticket_service_uses_depth(self, session, clock):
        service = TicketWorkflowService.from_settings(
            session, EngineSettings(max_auto_transition_depth=3), clock=clock,
        )
        assert service.executor._max_depth == 3

    def test_sla_monitor_uses_interval(self, session_factory, clock):
        monitor = SlaMonitor.from_settings(
            EngineSettings(sla_sweep_interval_seconds=90), session_factory, clock=clock,
        )
        assert monitor._interval == 90
        assert not monitor.is_running
