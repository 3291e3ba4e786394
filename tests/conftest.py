"""
Pytest fixtures for the ticketflow test suite.

Provides:
- Structured logging capture
- A DeterministicClock
- In-memory SQLite sessions (fresh schema per test)
- In-memory collaborator fakes and a wired WorkflowExecutor
"""

import json
import logging
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from ticketflow_kernel.db.engine import build_engine, create_tables, drop_tables
from ticketflow_kernel.domain.clock import DeterministicClock
from ticketflow_kernel.domain.ticket import Actor
from ticketflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ticketflow_services.workflow_executor import WorkflowExecutor

from tests.builders import T0
from tests.fakes import InMemoryApprovalProvider, InMemoryWorkflowDefinitionStore


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ticketflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, executor):
            executor.apply_transition(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ticketflow")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Time and actors
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(T0)


@pytest.fixture
def admin() -> Actor:
    return Actor.of("admin-1", "admin")


@pytest.fixture
def plain_user() -> Actor:
    return Actor.of("user-1", "user")


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    eng = build_engine("sqlite://")
    create_tables(eng)
    yield eng
    drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# In-memory collaborators
# =============================================================================


@pytest.fixture
def definitions() -> InMemoryWorkflowDefinitionStore:
    return InMemoryWorkflowDefinitionStore()


@pytest.fixture
def approvals() -> InMemoryApprovalProvider:
    return InMemoryApprovalProvider()


@pytest.fixture
def trace_records() -> list[dict]:
    return []


@pytest.fixture
def executor(definitions, approvals, clock, trace_records) -> WorkflowExecutor:
    return WorkflowExecutor(
        definitions=definitions,
        approvals=approvals,
        clock=clock,
        outcome_sink=trace_records.append,
    )
